"""Tests for InMemoryMarketLedger: commit atomicity, guards and leaderboards."""

from datetime import UTC, datetime, timedelta

import pytest

from src.pm_common.enums import LeaderboardKind
from src.pm_common.errors import (
    AlreadyResolvedError,
    DuplicateIdError,
    InsufficientBankrollError,
    InternalError,
    MarketNotFoundError,
    PersistenceFailureError,
)
from src.pm_ledger.domain.models import Market
from src.pm_settlement.domain.settlement import BetSettlement

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _make_market(market_id: str = "market_1", created_at: datetime = NOW) -> Market:
    return Market(
        id=market_id,
        question="Will it rain?",
        creator="carol",
        deadline=NOW + timedelta(days=1),
        created_at=created_at,
    )


def _settlement(user_id: str, stake: int, probability: float, payout: int) -> BetSettlement:
    return BetSettlement(
        user_id=user_id,
        stake=stake,
        probability=probability,
        accuracy=probability,
        payout=payout,
        was_correct=probability > 0.5,
    )


async def _seed_bet(ledger, user_id: str, stake: int, probability: float) -> None:
    await ledger.get_or_create_user(user_id)
    existing = await ledger.get_open_bet("market_1", user_id)
    delta = stake - (existing.stake if existing else 0)
    await ledger.commit_bet_placement(
        "market_1", user_id, stake, probability, probability, stake, delta
    )


class TestUsers:
    async def test_get_or_create_is_idempotent(self, ledger) -> None:
        first = await ledger.get_or_create_user("alice")
        await ledger.apply_user_update("alice", {"bankroll": 1200})
        second = await ledger.get_or_create_user("alice")
        assert first.bankroll == 1000
        assert second.bankroll == 1200

    async def test_reads_are_copies(self, ledger) -> None:
        user = await ledger.get_or_create_user("alice")
        user.bankroll = 5
        assert (await ledger.get_user("alice")).bankroll == 1000

    async def test_update_rejects_unknown_field(self, ledger) -> None:
        await ledger.get_or_create_user("alice")
        with pytest.raises(ValueError):
            await ledger.apply_user_update("alice", {"id": "mallory"})

    async def test_update_unknown_user(self, ledger) -> None:
        with pytest.raises(InternalError):
            await ledger.apply_user_update("ghost", {"bankroll": 1})

    async def test_reset_keeps_open_stake_reserved(self, ledger) -> None:
        await ledger.get_or_create_user("alice")
        await ledger.apply_user_update(
            "alice",
            {"bankroll": 300, "total_staked": 120, "bets_placed": 9, "best_streak": 4},
        )
        reset = await ledger.reset_user_stats("alice")
        assert reset.bankroll == 1000
        assert reset.total_staked == 120
        assert reset.bets_placed == 0
        assert reset.best_streak == 0
        assert reset.accuracy == 0.5

    async def test_reset_unknown_user(self, ledger) -> None:
        assert await ledger.reset_user_stats("ghost") is None


class TestMarkets:
    async def test_create_and_duplicate(self, ledger) -> None:
        await ledger.create_market(_make_market())
        with pytest.raises(DuplicateIdError):
            await ledger.create_market(_make_market())
        assert (await ledger.get_user("carol")).markets_created == 1

    async def test_open_markets_newest_first(self, ledger) -> None:
        await ledger.create_market(_make_market("market_1", NOW))
        await ledger.create_market(_make_market("market_2", NOW + timedelta(minutes=5)))
        await ledger.create_market(_make_market("market_3", NOW + timedelta(minutes=1)))
        await ledger.apply_market_update("market_3", {"active": False})
        ids = [m.id for m in await ledger.list_open_markets()]
        assert ids == ["market_2", "market_1"]

    async def test_update_unknown_market(self, ledger) -> None:
        with pytest.raises(MarketNotFoundError):
            await ledger.apply_market_update("market_nope", {"active": False})

    async def test_update_rejects_unknown_field(self, ledger) -> None:
        await ledger.create_market(_make_market())
        with pytest.raises(ValueError):
            await ledger.apply_market_update("market_1", {"creator": "mallory"})


class TestBets:
    async def test_upsert_replaces_in_place(self, ledger) -> None:
        await ledger.upsert_bet("market_1", "alice", 10, 0.2)
        first = await ledger.get_open_bet("market_1", "alice")
        await ledger.upsert_bet("market_1", "alice", 30, 0.7)
        bets = await ledger.list_bets("market_1")
        assert len(bets) == 1
        assert (bets[0].stake, bets[0].probability) == (30, 0.7)
        assert bets[0].created_at == first.created_at

    async def test_list_bets_scoped_to_market(self, ledger) -> None:
        await ledger.upsert_bet("market_1", "alice", 10, 0.2)
        await ledger.upsert_bet("market_2", "alice", 10, 0.2)
        assert len(await ledger.list_bets("market_1")) == 1


class TestCommitBetPlacement:
    async def test_writes_bet_market_and_user_together(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await _seed_bet(ledger, "alice", 40, 0.6)
        market = await ledger.get_market("market_1")
        assert (market.probability, market.total_stake) == (0.6, 40)
        assert (await ledger.get_user("alice")).total_staked == 40
        assert (await ledger.get_open_bet("market_1", "alice")).stake == 40

    async def test_insolvent_commit_applies_nothing(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await ledger.get_or_create_user("alice")
        await ledger.apply_user_update("alice", {"total_staked": 990})
        with pytest.raises(InsufficientBankrollError):
            await ledger.commit_bet_placement("market_1", "alice", 20, 0.9, 0.9, 20, 20)
        assert await ledger.get_open_bet("market_1", "alice") is None
        assert (await ledger.get_market("market_1")).total_stake == 0

    async def test_stale_replacement_rejected(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await _seed_bet(ledger, "alice", 40, 0.6)
        # Caller believes there is no prior bet (delta == stake)
        with pytest.raises(PersistenceFailureError):
            await ledger.commit_bet_placement("market_1", "alice", 50, 0.8, 0.8, 50, 50)
        assert (await ledger.get_user("alice")).total_staked == 40

    async def test_resolved_market_rejected(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await ledger.get_or_create_user("alice")
        await ledger.apply_market_update("market_1", {"resolved": True})
        with pytest.raises(AlreadyResolvedError):
            await ledger.commit_bet_placement("market_1", "alice", 10, 0.5, 0.5, 10, 10)
        assert (await ledger.get_user("alice")).total_staked == 0

    async def test_unknown_user_rejected(self, ledger) -> None:
        await ledger.create_market(_make_market())
        with pytest.raises(InternalError):
            await ledger.commit_bet_placement("market_1", "ghost", 10, 0.5, 0.5, 10, 10)


class TestCommitResolution:
    async def test_stale_settlements_apply_nothing(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await _seed_bet(ledger, "alice", 40, 0.6)
        await _seed_bet(ledger, "bob", 60, 0.9)
        # bob's bet is missing from the settlement set
        with pytest.raises(PersistenceFailureError):
            await ledger.commit_resolution(
                "market_1", True, NOW, [_settlement("alice", 40, 0.6, 64)]
            )
        assert (await ledger.get_market("market_1")).resolved is False
        assert (await ledger.get_user("alice")).bankroll == 1000

    async def test_unknown_user_settlement_applies_nothing(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await ledger.upsert_bet("market_1", "ghost", 10, 0.7)
        with pytest.raises(InternalError):
            await ledger.commit_resolution(
                "market_1", True, NOW, [_settlement("ghost", 10, 0.7, 17)]
            )
        assert (await ledger.get_market("market_1")).resolved is False

    async def test_already_resolved(self, ledger) -> None:
        await ledger.create_market(_make_market())
        await ledger.apply_market_update("market_1", {"resolved": True})
        with pytest.raises(AlreadyResolvedError):
            await ledger.commit_resolution("market_1", True, NOW, [])


class TestLeaderboards:
    async def _seed_users(self, ledger) -> None:
        rows = {
            "alice": {"bets_placed": 5, "bets_won": 4, "accuracy": 0.8, "total_profit": 90,
                      "best_streak": 3, "prediction_streak": 1},
            "bob": {"bets_placed": 2, "bets_won": 2, "accuracy": 1.0, "total_profit": 120,
                    "best_streak": 2, "prediction_streak": 2},
            "carol": {"bets_placed": 8, "bets_won": 4, "accuracy": 0.5, "total_profit": -30,
                      "best_streak": 3, "prediction_streak": 3},
        }
        for user_id, fields in rows.items():
            await ledger.get_or_create_user(user_id)
            await ledger.apply_user_update(user_id, fields)
        await ledger.get_or_create_user("lurker")

    @pytest.mark.parametrize(
        "kind, expected",
        [
            (LeaderboardKind.ACCURACY, ["alice", "carol"]),
            (LeaderboardKind.PROFIT, ["bob", "alice", "carol"]),
            (LeaderboardKind.VOLUME, ["carol", "alice", "bob"]),
            (LeaderboardKind.STREAK, ["carol", "alice", "bob"]),
        ],
    )
    async def test_ordering_and_eligibility(self, ledger, kind, expected) -> None:
        await self._seed_users(ledger)
        assert [u.id for u in await ledger.leaderboard(kind, 10)] == expected

    async def test_limit(self, ledger) -> None:
        await self._seed_users(ledger)
        assert len(await ledger.leaderboard(LeaderboardKind.VOLUME, 2)) == 2
