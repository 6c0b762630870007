"""Reference-data records served by the proposal backend.

These arrive as JSON (numbers sometimes as strings, ids sometimes as
integers), so they are pydantic models and coerce on validation.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, field_validator

from feecore.hierarchy.models import Phase


class FeeScaleRow(BaseModel):
    """One construction-cost tier of the design fee schedule. Rates are percents."""

    construction_cost: float  # tier floor
    prime_consultant_fee: float
    fraction_of_prime_rate_mechanical: float = 0.0
    fraction_of_prime_rate_plumbing: float = 0.0
    fraction_of_prime_rate_electrical: float = 0.0
    fraction_of_prime_rate_structural: float = 0.0


class DuplicateRateRow(BaseModel):
    """Multiplier applied to the k-th occurrence of a structure."""

    ordinal: int = Field(ge=1, validation_alias=AliasChoices("ordinal", "id"))
    rate: float


class ConstructionType(BaseModel):
    id: int
    project_type: str
    relative_cost_index: float | None = None


class StandardService(BaseModel):
    """An engineering service offered per discipline."""

    id: str
    discipline: str
    service_name: str
    phase: Phase = Phase.DESIGN
    default_setting: bool = False

    model_config = {"coerce_numbers_to_str": True}

    @field_validator("phase", mode="before")
    @classmethod
    def default_phase(cls, value):
        # Items stored without a phase belong to the design table.
        return value or Phase.DESIGN


class AdditionalService(BaseModel):
    """A linkable additional line item."""

    id: str
    name: str
    description: str | None = ""
    discipline: str | None = None
    phase: Phase = Phase.DESIGN
    default_min_value: float = 0.0
    is_active: bool = True

    model_config = {"coerce_numbers_to_str": True}

    @field_validator("default_min_value", mode="before")
    @classmethod
    def zero_when_missing(cls, value):
        return 0.0 if value is None else value

    @field_validator("phase", mode="before")
    @classmethod
    def default_phase(cls, value):
        # Items stored without a phase belong to the design table.
        return value or Phase.DESIGN


class ServiceLink(BaseModel):
    engineering_service_id: str
    additional_item_id: str

    model_config = {"coerce_numbers_to_str": True}
