"""Consistency checks between the ABI, the field manifest and the handler table."""

import pytest

from app.models.enums import ContractEventType
from app.services.blockchain.contract_abi import CONTRACT_EVENTS_ABI
from app.services.event_decoder import FIELD_MANIFEST, FieldKind, field_kind
from app.services.event_processor import EVENT_HANDLERS, REWARD_DECREASING, REWARD_INCREASING

ABI_BY_NAME = {item["name"]: item for item in CONTRACT_EVENTS_ABI}


class TestFieldManifest:
    """Every ABI field has exactly one declared kind."""

    @pytest.mark.parametrize("event_name", sorted(ABI_BY_NAME))
    def test_manifest_matches_abi_inputs(self, event_name):
        abi_fields = {item["name"] for item in ABI_BY_NAME[event_name]["inputs"]}
        assert set(FIELD_MANIFEST[event_name]) == abi_fields

    def test_no_manifest_entry_without_abi_event(self):
        assert set(FIELD_MANIFEST) <= set(ABI_BY_NAME)

    def test_uint_fields_are_never_addresses(self):
        for event_name, item in ((n, i) for n, a in ABI_BY_NAME.items() for i in a["inputs"]):
            kind = FIELD_MANIFEST[event_name][item["name"]]
            if item["type"] == "address":
                assert kind is FieldKind.ADDRESS, (event_name, item["name"])
            if item["type"].startswith("uint"):
                assert kind in (
                    FieldKind.MONETARY, FieldKind.COUNT, FieldKind.TIMESTAMP, FieldKind.ID
                ), (event_name, item["name"])

    def test_field_kind_lookup(self):
        assert field_kind("BulkReferralRewardEarned", "salesTotal") is FieldKind.MONETARY
        assert field_kind("BulkReferralRewardEarned", "referralCount") is FieldKind.COUNT
        assert field_kind("BulkReferralRewardEarned", "nope") is None
        assert field_kind("Nope", "salesTotal") is None


class TestHandlerTable:
    """The handler table is closed over ContractEventType."""

    def test_every_event_type_has_a_handler(self):
        assert set(EVENT_HANDLERS) == set(ContractEventType)

    def test_every_event_type_is_in_the_abi(self):
        for event_type in ContractEventType:
            assert event_type.value in ABI_BY_NAME

    def test_reward_direction_sets_are_disjoint(self):
        assert not REWARD_INCREASING & REWARD_DECREASING
