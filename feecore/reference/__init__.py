"""Reference data: records, HTTP client, table loading."""
