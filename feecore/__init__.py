"""Design fee computation and structure-hierarchy engine.

Public API:
    - Proposal            - the in-memory Structure → Level → Space → Fee tree
    - RateTables          - fee schedule + duplicate rate tables
    - ReferenceClient     - HTTP client for the reference-data endpoints
    - ServiceResolver     - linked additional-service resolution
    - Phase               - design / construction
    - FeeCoreError        - base exception for blanket catch
"""

from __future__ import annotations

from feecore.exceptions import FeeCoreError
from feecore.fees.engine import RateTables
from feecore.hierarchy.models import Phase
from feecore.hierarchy.store import Proposal
from feecore.reference.client import ReferenceClient
from feecore.services.resolver import ServiceResolver

__all__ = [
    "FeeCoreError",
    "Phase",
    "Proposal",
    "RateTables",
    "ReferenceClient",
    "ServiceResolver",
]
