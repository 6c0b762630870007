"""Tests for linked additional-service resolution."""

from unittest.mock import MagicMock

import pytest

from feecore.hierarchy.models import Fee, FeeItemType, Phase, Space
from feecore.hierarchy.store import Proposal
from feecore.reference.models import AdditionalService, ServiceLink, StandardService
from feecore.services.resolver import ServiceResolver, active_disciplines, classify_item

STANDARD = [
    StandardService(id="s-mech", discipline="Mechanical", service_name="HVAC Design"),
    StandardService(id="s-elec", discipline="Electrical", service_name="Power Design"),
    StandardService(id="s-plmb", discipline="Plumbing", service_name="Domestic Water"),
]

ITEMS = [
    AdditionalService(id="a-tab", name="Air Balancing", phase="construction", default_min_value=900),
    AdditionalService(id="a-photo", name="Site Photometry", phase="design", default_min_value=750),
    AdditionalService(id="a-cx", name="Electrical Commissioning", phase="construction", default_min_value=1_200),
    AdditionalService(id="a-old", name="Retired Item", phase="design", is_active=False),
]

LINKS = [
    ServiceLink(engineering_service_id="s-mech", additional_item_id="a-tab"),
    ServiceLink(engineering_service_id="s-elec", additional_item_id="a-photo"),
    ServiceLink(engineering_service_id="s-elec", additional_item_id="a-cx"),
    ServiceLink(engineering_service_id="s-elec", additional_item_id="a-old"),
    ServiceLink(engineering_service_id="s-elec", additional_item_id="a-unknown"),
]


def _space(*disciplines, inactive=()):
    fees = [Fee(id=f"f-{d}", discipline=d, is_active=True) for d in disciplines]
    fees += [Fee(id=f"f-{d}", discipline=d, is_active=False) for d in inactive]
    return Space(id="sp1", name="Office", fees=fees)


def _client(links=LINKS):
    client = MagicMock()
    client.fetch_service_links.side_effect = lambda ids: [link for link in links if link.engineering_service_id in ids]
    return client


class TestClassifyItem:
    def test_rescheck(self):
        assert classify_item("ResCheck", None, "Mechanical") == FeeItemType.RESCHECK

    def test_matching_discipline_nests(self):
        assert classify_item("Duct Survey", "Mechanical", "Mechanical") == FeeItemType.NESTED

    def test_known_nested_names(self):
        assert classify_item("Site Photometry", None, "Electrical") == FeeItemType.NESTED
        assert classify_item("Backflow Testing", None, "Plumbing") == FeeItemType.NESTED
        assert classify_item("Air Balancing", None, "Mechanical") == FeeItemType.NESTED

    def test_nested_name_under_other_discipline_is_multi(self):
        assert classify_item("Air Balancing", None, "Electrical") == FeeItemType.MULTI

    def test_discipline_headers(self):
        assert classify_item("Plumbing", None, "Civil") == FeeItemType.DISCIPLINE

    def test_everything_else(self):
        assert classify_item("Energy Model", "Energy", "Mechanical") == FeeItemType.MULTI


class TestResolve:
    def test_active_disciplines(self):
        assert active_disciplines(_space("Mechanical", inactive=("Plumbing",))) == ["Mechanical"]

    def test_items_attached_per_discipline(self):
        client = _client()
        resolver = ServiceResolver(client, STANDARD, ITEMS)
        items = resolver.resolve("st1", "lv1", _space("Mechanical", "Electrical"))

        client.fetch_service_links.assert_called_once_with(["s-mech", "s-elec"])
        assert [(i.name, i.discipline, i.phase) for i in items] == [
            ("Air Balancing", "Mechanical", Phase.CONSTRUCTION),
            ("Site Photometry", "Electrical", Phase.DESIGN),
            ("Electrical Commissioning", "Electrical", Phase.CONSTRUCTION),
        ]
        assert all(i.type == FeeItemType.ADDITIONAL_SERVICE for i in items)
        assert all((i.structure_id, i.level_id, i.space_id) == ("st1", "lv1", "sp1") for i in items)
        assert items[0].default_min_value == 900
        assert items[0].parent_discipline == "Mechanical"

    def test_inactive_fee_disciplines_ignored(self):
        client = _client()
        resolver = ServiceResolver(client, STANDARD, ITEMS)
        items = resolver.resolve("st1", "lv1", _space("Mechanical", inactive=("Electrical",)))
        assert [i.name for i in items] == ["Air Balancing"]

    def test_phase_mismatch_skipped(self):
        resolver = ServiceResolver(_client(), STANDARD, ITEMS)
        items = resolver.resolve("st1", "lv1", _space("Electrical"), phase="design")
        assert [i.name for i in items] == ["Site Photometry"]

    def test_no_matching_services_skips_fetch(self):
        client = _client()
        resolver = ServiceResolver(client, STANDARD, ITEMS)
        assert resolver.resolve("st1", "lv1", _space("Civil")) == []
        client.fetch_service_links.assert_not_called()

    def test_fetch_failure_yields_nothing(self):
        client = MagicMock()
        client.fetch_service_links.return_value = []
        resolver = ServiceResolver(client, STANDARD, ITEMS)
        assert resolver.resolve("st1", "lv1", _space("Mechanical")) == []

    def test_repeat_resolution_is_additive(self):
        resolver = ServiceResolver(_client(), STANDARD, ITEMS)
        space = _space("Mechanical")
        first = resolver.resolve("st1", "lv1", space)
        second = resolver.resolve("st1", "lv1", space)
        assert len(first) == len(second) == 1
        assert first[0].id != second[0].id

    def test_from_client_loads_catalogs(self):
        client = _client()
        client.fetch_standard_services.return_value = STANDARD
        client.fetch_additional_items.return_value = ITEMS
        resolver = ServiceResolver.from_client(client)
        assert resolver.standard_services == STANDARD
        assert len(resolver.resolve("st1", "lv1", _space("Mechanical"))) == 1


class TestProposalIntegration:
    def test_add_space_attaches_linked_items(self, tables):
        resolver = ServiceResolver(_client(), STANDARD, ITEMS)
        proposal = Proposal(tables=tables, resolver=resolver)
        s = proposal.add_structure("Tower")
        space = proposal.add_space(
            s.id, s.levels[0].id, "Office", 0,
            fees=[Fee(id="x", discipline="Electrical")],
        )
        assert [i.name for i in proposal.phase_items("design")] == ["Site Photometry"]
        assert [i.name for i in proposal.phase_items("construction")] == ["Electrical Commissioning"]
        assert proposal.total_design_fee(s.id) == pytest.approx(750)
        assert all(i.space_id == space.id for i in proposal.fee_items)

    def test_update_space_resolves_again(self, tables):
        resolver = ServiceResolver(_client(), STANDARD, ITEMS)
        proposal = Proposal(tables=tables, resolver=resolver)
        s = proposal.add_structure("Tower")
        space = proposal.add_space(s.id, s.levels[0].id, "Office", 0, fees=[Fee(id="x", discipline="Mechanical")])
        proposal.update_space(s.id, space.id, floor_area=10)
        assert [i.name for i in proposal.fee_items] == ["Air Balancing", "Air Balancing"]

    def test_deleting_space_drops_its_items(self, tables):
        resolver = ServiceResolver(_client(), STANDARD, ITEMS)
        proposal = Proposal(tables=tables, resolver=resolver)
        s = proposal.add_structure("Tower")
        space = proposal.add_space(s.id, s.levels[0].id, "Office", 0, fees=[Fee(id="x", discipline="Mechanical")])
        proposal.delete_space(s.id, space.id)
        assert proposal.fee_items == []
