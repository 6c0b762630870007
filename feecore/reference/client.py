"""HTTP client for the proposal backend's reference-data endpoints.

Every ``fetch_*`` method is a soft failure: network errors, HTTP error
statuses, malformed JSON and an open circuit are logged and turned into an
empty result so the fee engine falls back to its defaults (rate 0,
multiplier 1.0, no linked services). Rows that fail validation are dropped
individually.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError

from feecore.config import settings
from feecore.exceptions import ReferenceDataError
from feecore.fees.schedule import sort_scale
from feecore.reference.models import (
    AdditionalService,
    ConstructionType,
    DuplicateRateRow,
    FeeScaleRow,
    ServiceLink,
    StandardService,
)
from feecore.resilience.circuit_breaker import get_breaker

logger = logging.getLogger(__name__)

BREAKER_NAME = "reference_api"


class ReferenceClient:
    """Synchronous reference-data client around a shared ``httpx.Client``."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {}
        token = token if token is not None else settings.reference_api_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url or settings.reference_api_url,
            timeout=timeout or settings.request_timeout,
            headers=headers,
            transport=transport,
        )
        self.breaker = get_breaker(BREAKER_NAME)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ReferenceClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- transport ---------------------------------------------------------

    def request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Call ``endpoint`` and return decoded JSON, raising ``ReferenceDataError``."""
        if not self.breaker.allow_request():
            raise ReferenceDataError(endpoint, "circuit open")
        try:
            resp = self._client.request(method, endpoint, **kwargs)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            self.breaker.record_failure()
            raise ReferenceDataError(endpoint, str(exc) or type(exc).__name__) from exc
        self.breaker.record_success()
        return data

    def _fetch_rows(self, method: str, endpoint: str, model: type[BaseModel], key: str | None = None, **kwargs: Any) -> list:
        try:
            data = self.request(method, endpoint, **kwargs)
        except ReferenceDataError:
            logger.warning("Reference fetch failed; using empty %s", endpoint, exc_info=True)
            return []

        rows = data.get(key, []) if key and isinstance(data, dict) else data
        if not isinstance(rows, list):
            logger.warning("Unexpected %s payload of type %s", endpoint, type(rows).__name__)
            return []

        parsed = []
        for raw in rows:
            try:
                parsed.append(model.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Dropping invalid %s row: %s", endpoint, exc.errors()[:1])
        return parsed

    # -- endpoints ---------------------------------------------------------

    def fetch_fee_scale(self) -> list[FeeScaleRow]:
        return sort_scale(self._fetch_rows("GET", "design-fee-scale", FeeScaleRow))

    def fetch_duplicate_rates(self) -> list[DuplicateRateRow]:
        return self._fetch_rows("GET", "fee-duplicate-structures", DuplicateRateRow)

    def fetch_construction_types(self) -> list[ConstructionType]:
        return self._fetch_rows("GET", "project-construction-types", ConstructionType)

    def fetch_standard_services(self) -> list[StandardService]:
        return self._fetch_rows("GET", "engineering-services", StandardService, key="services")

    def fetch_additional_items(self) -> list[AdditionalService]:
        return self._fetch_rows("GET", "fee-additional-items", AdditionalService)

    def fetch_service_links(self, standard_service_ids: list[str]) -> list[ServiceLink]:
        """Links from standard services to additional items; [] on any failure."""
        if not standard_service_ids:
            return []
        return self._fetch_rows(
            "POST",
            "engineering-service-links",
            ServiceLink,
            key="links",
            json={"standardServiceIds": standard_service_ids},
        )
