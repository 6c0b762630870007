"""FastAPI app exposing one in-memory proposal to the UI / persistence layer."""

from __future__ import annotations

import dataclasses
import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from feecore.config import settings
from feecore.exceptions import FeeCoreError, InvalidDirectionError, StructureNotFoundError
from feecore.fees.overrides import parse_input_value
from feecore.hierarchy.models import Fee, Phase, new_id
from feecore.hierarchy.store import Proposal
from feecore.reference.client import ReferenceClient
from feecore.reference.loader import load_tables
from feecore.reference.seed import seed_if_empty
from feecore.services.resolver import ServiceResolver

load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="feecore", description="Design fee computation and structure hierarchy")

_proposal: Proposal | None = None


def get_proposal() -> Proposal:
    """Get or create the session's proposal, loading reference data once."""
    global _proposal
    if _proposal is None:
        if os.environ.get("TESTING") == "1":
            _proposal = Proposal()
        else:
            client = ReferenceClient()
            resolver = ServiceResolver.from_client(client)
            tables = load_tables(client)
            if settings.seed_reference_tables:
                tables = seed_if_empty(tables)
            _proposal = Proposal(
                tables=tables,
                standard_services=resolver.standard_services,
                resolver=resolver,
            )
    return _proposal


def set_proposal(proposal: Proposal | None) -> None:
    global _proposal
    _proposal = proposal


def _not_found(what: str, ident: str) -> JSONResponse:
    return JSONResponse({"error": f"{what} {ident} not found"}, status_code=404)


@app.exception_handler(InvalidDirectionError)
async def _bad_direction(request: Request, exc: InvalidDirectionError):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(StructureNotFoundError)
async def _missing_structure(request: Request, exc: StructureNotFoundError):
    return _not_found("Structure", exc.structure_id)


@app.exception_handler(FeeCoreError)
async def _core_error(request: Request, exc: FeeCoreError):
    return JSONResponse({"error": str(exc)}, status_code=422)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class StructureIn(BaseModel):
    description: str = ""
    construction_type: str = ""
    floor_area: float = 0.0


class RenameIn(BaseModel):
    description: str


class DesignFeeRateIn(BaseModel):
    design_fee_rate: float


class SupportIn(BaseModel):
    enabled: bool


class LevelsIn(BaseModel):
    direction: str = "up"
    count: int = 1


class DuplicateLevelIn(BaseModel):
    direction: str = "same"


class FeeIn(BaseModel):
    discipline: str
    cost_per_sqft: float = 0.0
    is_active: bool = True


class SpaceIn(BaseModel):
    name: str
    floor_area: float = 0.0
    building_type_id: str = ""
    split_fees: bool = False
    description: str = ""
    fees: list[FeeIn] | None = None


class SpaceUpdate(BaseModel):
    name: str | None = None
    floor_area: float | None = None
    building_type_id: str | None = None
    split_fees: bool | None = None
    description: str | None = None
    fees: list[FeeIn] | None = None


class ToggleIn(BaseModel):
    active: bool


class OverrideIn(BaseModel):
    structure_id: str
    discipline: str
    space_id: str
    kind: Phase = Phase.DESIGN
    value: str | float | None = None


class OverrideKey(BaseModel):
    structure_id: str
    discipline: str
    space_id: str


def _fees(items: list[FeeIn] | None) -> list[Fee] | None:
    if items is None:
        return None
    return [Fee(id=new_id(), discipline=f.discipline, is_active=f.is_active, cost_per_sqft=f.cost_per_sqft) for f in items]


# ---------------------------------------------------------------------------
# Proposal
# ---------------------------------------------------------------------------


@app.get("/proposal")
async def proposal_snapshot():
    return get_proposal().snapshot()


@app.get("/proposal/summary")
async def proposal_summary():
    summary = get_proposal().summary()
    return {**dataclasses.asdict(summary), "grand_total": summary.grand_total}


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------


@app.post("/structures")
async def add_structure(body: StructureIn):
    structure = get_proposal().add_structure(body.description, body.construction_type, body.floor_area)
    return dataclasses.asdict(structure)


@app.post("/structures/{structure_id}/duplicate")
async def duplicate_structure(structure_id: str):
    dup = get_proposal().duplicate_structure(structure_id)
    if dup is None:
        return _not_found("Structure", structure_id)
    return dataclasses.asdict(dup)


@app.post("/structures/{structure_id}/copy")
async def copy_structure(structure_id: str):
    copied = get_proposal().copy_structure(structure_id)
    if copied is None:
        return _not_found("Structure", structure_id)
    return dataclasses.asdict(copied)


@app.delete("/structures/{structure_id}")
async def delete_structure(structure_id: str):
    return {"deleted": get_proposal().delete_structure(structure_id)}


@app.put("/structures/{structure_id}/description")
async def rename_structure(structure_id: str, body: RenameIn):
    return {"updated": get_proposal().rename_structure(structure_id, body.description)}


@app.put("/structures/{structure_id}/design-fee-rate")
async def set_design_fee_rate(structure_id: str, body: DesignFeeRateIn):
    return {"updated": get_proposal().set_design_fee_rate(structure_id, body.design_fee_rate)}


@app.put("/structures/{structure_id}/construction-support")
async def set_construction_support(structure_id: str, body: SupportIn):
    return {"updated": get_proposal().set_construction_support(structure_id, body.enabled)}


@app.get("/structures/{structure_id}/fees")
async def structure_fees(structure_id: str):
    """Discipline table and phase totals for one structure."""
    proposal = get_proposal()
    return {
        "disciplines": [dataclasses.asdict(row) for row in proposal.discipline_totals(structure_id)],
        "total_design_fee": proposal.total_design_fee(structure_id),
        "total_construction_support_fee": proposal.total_construction_support_fee(structure_id),
    }


@app.put("/structures/{structure_id}/fees/{discipline}")
async def toggle_fee(structure_id: str, discipline: str, body: ToggleIn):
    return {"changed": get_proposal().toggle_fee(structure_id, discipline, body.active)}


@app.put("/fees/{fee_id}")
async def toggle_space_fee(fee_id: str, body: ToggleIn):
    if not get_proposal().toggle_space_fee(fee_id, body.active):
        return _not_found("Fee", fee_id)
    return {"changed": 1}


# ---------------------------------------------------------------------------
# Levels and spaces
# ---------------------------------------------------------------------------


@app.post("/structures/{structure_id}/levels")
async def add_levels(structure_id: str, body: LevelsIn):
    added = get_proposal().add_level(structure_id, body.direction, body.count)
    return [dataclasses.asdict(lv) for lv in added]


@app.post("/structures/{structure_id}/levels/{level_id}/duplicate")
async def duplicate_level(structure_id: str, level_id: str, body: DuplicateLevelIn):
    level = get_proposal().duplicate_level(structure_id, level_id, body.direction)
    if level is None:
        return _not_found("Level", level_id)
    return dataclasses.asdict(level)


@app.delete("/structures/{structure_id}/levels/{level_id}")
async def delete_level(structure_id: str, level_id: str):
    return {"deleted": get_proposal().delete_level(structure_id, level_id)}


@app.post("/structures/{structure_id}/levels/{level_id}/spaces")
async def add_space(structure_id: str, level_id: str, body: SpaceIn):
    space = get_proposal().add_space(
        structure_id,
        level_id,
        body.name,
        body.floor_area,
        fees=_fees(body.fees),
        building_type_id=body.building_type_id,
        split_fees=body.split_fees,
        description=body.description,
    )
    if space is None:
        return _not_found("Level", level_id)
    return dataclasses.asdict(space)


@app.patch("/structures/{structure_id}/spaces/{space_id}")
async def update_space(structure_id: str, space_id: str, body: SpaceUpdate):
    changes = body.model_dump(exclude_none=True, exclude={"fees"})
    space = get_proposal().update_space(structure_id, space_id, fees=_fees(body.fees), **changes)
    if space is None:
        return _not_found("Space", space_id)
    return dataclasses.asdict(space)


@app.delete("/structures/{structure_id}/spaces/{space_id}")
async def delete_space(structure_id: str, space_id: str):
    return {"deleted": get_proposal().delete_space(structure_id, space_id)}


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


@app.put("/overrides")
async def set_override(body: OverrideIn):
    proposal = get_proposal()
    record = proposal.set_override(
        body.structure_id, body.discipline, body.space_id, body.kind, parse_input_value(body.value)
    )
    effective = proposal.effective_fee(body.structure_id, body.discipline, body.space_id, body.kind)
    return {"override": dataclasses.asdict(record) if record else None, "effective": effective}


@app.post("/overrides/reset")
async def reset_override(body: OverrideKey):
    proposal = get_proposal()
    removed = proposal.reset_override(body.structure_id, body.discipline, body.space_id)
    return {
        "reset": removed,
        "design_fee": proposal.effective_fee(body.structure_id, body.discipline, body.space_id, Phase.DESIGN),
        "construction_support_fee": proposal.effective_fee(
            body.structure_id, body.discipline, body.space_id, Phase.CONSTRUCTION
        ),
    }
