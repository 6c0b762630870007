"""Fee schedule lookups, duplicate discounts, calculator and overrides."""
