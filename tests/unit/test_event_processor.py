"""Unit tests for the event processor and history replay."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from app.services.event_decoder import EventDecoder
from app.services.event_processor import (
    AdjustRewards,
    EnsurePackageStats,
    EnsureUser,
    EventProcessor,
    SetAscensionCounters,
    SetPackageReferralCount,
    SetReferralCount,
    UpsertPackage,
    deltas_for,
    reward_beneficiary,
    reward_direction,
)
from factories import ALICE, BOB, CAROL, WEI

BLOCK_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def process(make_log):
    """Decode and process one event built from keyword values."""
    decoder = EventDecoder()
    processor = EventProcessor()

    def _process(event_name, block=200, **values):
        return processor.apply(decoder.decode(make_log(event_name, block, **values)), BLOCK_TIME)

    return _process


class TestEventProcessor:
    """Tests for per-event records and deltas."""

    def test_referral_registered_sets_referrer_counters(self, process):
        result = process(
            "ReferralRegistered",
            user=ALICE, referrer=BOB, packageId=1,
            packageReferralCount=1, totalReferralCount=2,
        )

        record = result.record
        assert record.event_type == "ReferralRegistered"
        assert record.user_address == ALICE
        assert record.referrer_address == BOB
        assert record.package_id == 1
        assert record.timestamp == BLOCK_TIME
        assert record.payload == {"packageReferralCount": 1, "totalReferralCount": 2}
        assert result.deltas == (
            EnsureUser(ALICE),
            SetReferralCount(BOB, 2),
            SetPackageReferralCount(BOB, 1, 1),
        )

    def test_booster_reward_adds_to_subject(self, process):
        result = process("AddBoosterReward", user=BOB, boosterReward=5 * WEI)

        assert result.record.amount == Decimal("5")
        assert result.deltas == (AdjustRewards(BOB, Decimal("5")),)

    def test_withdrawal_consumes_rewards(self, process):
        result = process("RewardsWithdrawn", user=BOB, amount=2 * WEI)

        assert result.deltas == (AdjustRewards(BOB, Decimal("-2")),)

    def test_node_purchase_registers_user(self, process):
        result = process(
            "NodePurchased",
            user=CAROL, packageId=4, purchaseTime=1_700_000_000,
            expiryTime=1_702_592_000, currentNodeId=17,
        )

        assert result.record.payload == {
            "nodeId": 17, "purchaseTime": 1_700_000_000, "expiryTime": 1_702_592_000,
        }
        assert result.deltas == (
            EnsureUser(CAROL, registered=True),
            EnsurePackageStats(CAROL, 4),
        )

    def test_level_reward_credits_the_referral(self, process):
        result = process(
            "UserHoldRewardLevel",
            user=ALICE, amount=WEI, nodeIndex=2, referral=BOB, level=1,
        )

        assert result.record.user_address == ALICE
        assert result.record.referrer_address == BOB
        assert AdjustRewards(BOB, Decimal("1"), 2) in result.deltas

    def test_bulk_reward_sets_ascension_counters(self, process):
        result = process(
            "BulkReferralRewardEarned",
            user=ALICE, _packageId=3, rewardAmount=10 * WEI,
            salesTotal=500 * WEI, referralCount=6,
        )

        assert result.record.package_id == 3
        assert SetAscensionCounters(
            address=ALICE,
            package_id=3,
            referrals=6,
            sales_total=Decimal("500"),
            rewards_claimed=Decimal("10"),
        ) in result.deltas

    def test_package_added_upserts_catalog(self, process):
        result = process(
            "NodePackageAdded",
            id=2, name="Gold", price=250 * WEI, duration=90, roiPercentage=180,
        )

        assert result.record.user_address == ""
        assert result.deltas == (UpsertPackage(
            package_id=2, name="Gold", price=Decimal("250"),
            duration=90, roi_percentage=180, is_active=True,
        ),)

    def test_settings_event_keeps_fields_in_payload(self, process):
        result = process("UpdateBoosterPercentage", boosterPercentage=15)

        assert result.record.payload == {"boosterPercentage": 15}
        assert result.deltas == ()

    def test_event_without_handler_is_passed_through(self, process):
        result = process("OwnershipTransferred", previousOwner=ALICE, newOwner=BOB)

        assert result.record.event_type == "OwnershipTransferred"
        assert result.record.payload == {"previousOwner": ALICE, "newOwner": BOB}
        assert result.deltas == ()

    def test_natural_key_includes_log_index(self, make_log):
        decoder = EventDecoder()
        processor = EventProcessor()
        tx = "0x" + "12" * 32
        first = make_log("AddBoosterReward", 300, log_index=0, tx=tx, user=BOB, boosterReward=WEI)
        second = make_log("AddBoosterReward", 300, log_index=1, tx=tx, user=BOB, boosterReward=WEI)

        key_a = processor.apply(decoder.decode(first), BLOCK_TIME).record.natural_key
        key_b = processor.apply(decoder.decode(second), BLOCK_TIME).record.natural_key

        assert key_a != key_b


class TestReplay:
    """Deltas re-derived from stored records match live processing."""

    @pytest.mark.parametrize(
        ("event_name", "values"),
        [
            ("AddBoosterReward", {"user": BOB, "boosterReward": 5 * WEI}),
            ("RewardsWithdrawn", {"user": BOB, "amount": 2 * WEI}),
            ("ReferralRewardEarned", {
                "referrer": BOB, "user": ALICE, "packageId": 1, "level": 1, "rewardAmount": WEI,
            }),
            ("UserReleaseRewardLevel", {
                "user": ALICE, "amount": WEI, "nodeIndex": 1, "referral": CAROL, "level": 2,
            }),
            ("UserHoldReward", {"user": ALICE, "amount": 3 * WEI, "nodeIndex": 2}),
            ("LiquidityWithdrawn", {
                "user": ALICE, "liquidityAddress": CAROL, "amount": WEI,
                "percentage": 10, "totalWithdrawn": 4 * WEI,
            }),
        ],
    )
    def test_reward_deltas_match(self, process, event_name, values):
        live = process(event_name, **values)

        replayed = deltas_for(live.record)

        live_rewards = [d for d in live.deltas if isinstance(d, AdjustRewards)]
        assert [d for d in replayed if isinstance(d, AdjustRewards)] == live_rewards

    def test_referral_counts_come_from_payload(self, process):
        live = process(
            "ReferralRegistered",
            user=CAROL, referrer=BOB, packageId=2,
            packageReferralCount=3, totalReferralCount=5,
        )

        replayed = deltas_for(live.record)

        assert SetReferralCount(BOB, 5) in replayed
        assert SetPackageReferralCount(BOB, 2, 3) in replayed

    def test_referral_registered_creates_referred_user(self, process):
        live = process(
            "ReferralRegistered",
            user=CAROL, referrer=BOB, packageId=2,
            packageReferralCount=3, totalReferralCount=5,
        )

        replayed = deltas_for(live.record)

        assert replayed[0] == EnsureUser(CAROL)
        assert replayed == list(live.deltas)

    def test_combined_referral_event_creates_referred_user(self, process):
        live = process(
            "ReferralRegisteredAndRewardDistributed",
            user=CAROL, referrer=BOB, packageId=1, level=1, rewardAmount=2 * WEI,
        )

        assert deltas_for(live.record) == list(live.deltas)

    def test_bulk_reward_ascension_from_payload(self, process):
        live = process(
            "BulkReferralRewardEarned",
            user=ALICE, _packageId=3, rewardAmount=10 * WEI,
            salesTotal=500 * WEI, referralCount=6,
        )

        assert deltas_for(live.record) == list(live.deltas)

    def test_registering_events_mark_user_registered(self, process):
        live = process("UserRegistered", user=ALICE, packageId=1)

        assert deltas_for(live.record) == list(live.deltas)


class TestRewardDirection:
    """Tests for reward_direction and reward_beneficiary."""

    @pytest.mark.parametrize(
        ("event_type", "expected"),
        [
            ("AddBoosterReward", 1),
            ("ReferralRewardEarned", 1),
            ("RewardsWithdrawn", -1),
            ("DiscountedNodePurchased", -1),
            ("RewardsClaimed", 0),
            ("OwnershipTransferred", 0),
        ],
    )
    def test_direction(self, event_type, expected):
        assert reward_direction(event_type) == expected

    def test_level_reward_beneficiary_is_counterparty(self):
        assert reward_beneficiary("UserHoldRewardLevel", ALICE, BOB) == BOB
        assert reward_beneficiary("UserHoldReward", ALICE, BOB) == ALICE
