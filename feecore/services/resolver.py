"""Linked additional-service resolution.

When a space is created or edited, each of its active disciplines may have
standard engineering services, and each of those may link to additional
line items (testing, commissioning, photometry, ...). The resolver looks
those links up and turns every linked item into a ``FeeItem`` under the
service's discipline.

Repeated resolution for the same space appends again; there is no
deduplication.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from feecore.hierarchy.models import FeeItem, FeeItemType, Phase, Space, new_id
from feecore.reference.models import AdditionalService, StandardService

logger = logging.getLogger(__name__)

DISCIPLINE_ITEMS = {"Electrical", "Plumbing", "Mechanical"}

NESTED_ITEMS = {
    "Electrical": {"Site Photometry", "Electrical Testing", "Electrical Commissioning"},
    "Plumbing": {
        "Plumbing Testing",
        "Plumbing Commissioning",
        "Backflow Testing",
        "Site/Oil Grease Interceptor",
    },
    "Mechanical": {
        "Mechanical Testing",
        "Mechanical Commissioning",
        "Air Balancing",
        "Building Commissioning",
    },
}


def classify_item(name: str, item_discipline: str | None, target_discipline: str) -> FeeItemType:
    """Decide how a library item dropped on ``target_discipline`` is grouped."""
    if name == "ResCheck":
        return FeeItemType.RESCHECK
    if item_discipline and item_discipline == target_discipline:
        return FeeItemType.NESTED
    if name in NESTED_ITEMS.get(target_discipline, ()):
        return FeeItemType.NESTED
    if name in DISCIPLINE_ITEMS:
        return FeeItemType.DISCIPLINE
    return FeeItemType.MULTI


def active_disciplines(space: Space) -> list[str]:
    return [fee.discipline for fee in space.fees if fee.is_active]


class ServiceResolver:
    """Attaches linked additional items for a space's active disciplines.

    ``client`` needs a ``fetch_service_links(ids)`` method returning
    ``ServiceLink`` records (``ReferenceClient`` provides it).
    """

    def __init__(
        self,
        client,
        standard_services: Iterable[StandardService] = (),
        additional_items: Iterable[AdditionalService] = (),
    ) -> None:
        self._client = client
        self.standard_services = list(standard_services)
        self._items = {item.id: item for item in additional_items}

    @classmethod
    def from_client(cls, client) -> ServiceResolver:
        """Build a resolver with catalogs loaded through ``client``."""
        return cls(client, client.fetch_standard_services(), client.fetch_additional_items())

    def resolve(
        self,
        structure_id: str,
        level_id: str,
        space: Space,
        phase: Phase | str | None = None,
    ) -> list[FeeItem]:
        """Fee items for every linked additional item of the space's disciplines.

        With ``phase`` given, only items of that phase are attached; the rest
        are skipped. Link-fetch failures yield an empty list.
        """
        section = Phase(phase) if phase is not None else None
        disciplines = set(active_disciplines(space))
        services = [s for s in self.standard_services if s.discipline in disciplines]
        if not services:
            return []

        links = self._client.fetch_service_links([s.id for s in services])
        by_service = {s.id: s for s in services}

        attached: list[FeeItem] = []
        for link in links:
            service = by_service.get(link.engineering_service_id)
            item = self._items.get(link.additional_item_id)
            if service is None or item is None or not item.is_active:
                continue
            if section is not None and item.phase != section:
                logger.debug("Skipping %r: %s item in %s table", item.name, item.phase.value, section.value)
                continue
            attached.append(
                FeeItem(
                    id=new_id(),
                    name=item.name,
                    phase=item.phase,
                    type=FeeItemType.ADDITIONAL_SERVICE,
                    description=item.description or "",
                    default_min_value=item.default_min_value,
                    discipline=service.discipline,
                    parent_discipline=service.discipline,
                    structure_id=structure_id,
                    level_id=level_id,
                    space_id=space.id,
                )
            )

        if attached:
            logger.info("Attached %d linked item(s) to space %r", len(attached), space.name)
        return attached
