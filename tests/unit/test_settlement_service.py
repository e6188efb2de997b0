"""Tests for SettlementService.resolve_market."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from src.pm_betting.application.service import BettingService
from src.pm_common.errors import (
    AlreadyResolvedError,
    MarketNotFoundError,
    NoParticipantsError,
    PersistenceFailureError,
)
from src.pm_ledger.domain.models import Bet, Market
from src.pm_settlement.application.service import SettlementService

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
RESOLVED_AT = NOW + timedelta(days=2)


def _settler(ledger) -> SettlementService:
    return SettlementService(ledger, clock=lambda: RESOLVED_AT)


async def _market_with_bets(ledger, bets: list[tuple[str, int, float]]) -> Market:
    svc = BettingService(ledger, clock=lambda: NOW)
    market = await svc.create_market("Will it rain?", "carol", NOW + timedelta(days=1))
    for user_id, amount, p in bets:
        await svc.place_bet(market.id, user_id, amount, p)
    return market


class TestResolveMarket:
    async def test_worked_example_yes(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 40, 0.6), ("bob", 60, 0.9)])
        settlements = await _settler(ledger).resolve_market(market.id, True)

        payouts = {s.user_id: s.payout for s in settlements}
        assert payouts == {"alice": 64, "bob": 114}

        alice = await ledger.get_user("alice")
        bob = await ledger.get_user("bob")
        assert (alice.bankroll, alice.total_staked, alice.total_profit) == (1064, 0, 24)
        assert (bob.bankroll, bob.total_staked, bob.total_profit) == (1114, 0, 54)
        assert alice.bets_won == bob.bets_won == 1
        assert alice.prediction_streak == bob.prediction_streak == 1

        stored = await ledger.get_market(market.id)
        assert stored.resolved is True
        assert stored.resolution is True
        assert stored.resolved_at == RESOLVED_AT
        assert not stored.is_open

    async def test_no_outcome_loses_profit_not_principal(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 40, 1.0), ("bob", 20, 0.0)])
        await _settler(ledger).resolve_market(market.id, False)
        alice = await ledger.get_user("alice")
        bob = await ledger.get_user("bob")
        assert alice.bankroll == 1040
        assert alice.total_profit == 0
        assert alice.prediction_streak == 0
        assert bob.bankroll == 1040
        assert bob.accuracy == 1.0

    async def test_neutral_bet_counts_as_placed_not_won(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 10, 0.5)])
        await _settler(ledger).resolve_market(market.id, True)
        alice = await ledger.get_user("alice")
        assert alice.bets_placed == 1
        assert alice.bets_won == 0
        assert alice.accuracy == 0.0
        assert alice.bankroll == 1015

    async def test_releases_only_this_markets_stake(self, ledger) -> None:
        m1 = await _market_with_bets(ledger, [("alice", 40, 0.6)])
        await _market_with_bets(ledger, [("alice", 70, 0.3)])
        await _settler(ledger).resolve_market(m1.id, True)
        alice = await ledger.get_user("alice")
        assert alice.total_staked == 70

    async def test_resolved_market_leaves_open_list(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 10, 0.7)])
        await _settler(ledger).resolve_market(market.id, True)
        assert market.id not in {m.id for m in await ledger.list_open_markets()}

    async def test_second_resolution_writes_nothing(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 40, 0.6)])
        await _settler(ledger).resolve_market(market.id, True)
        before = await ledger.get_user("alice")
        with pytest.raises(AlreadyResolvedError):
            await _settler(ledger).resolve_market(market.id, False)
        after = await ledger.get_user("alice")
        assert (after.bankroll, after.bets_placed) == (before.bankroll, before.bets_placed)
        assert (await ledger.get_market(market.id)).resolution is True

    async def test_concurrent_resolution_pays_once(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 40, 0.6)])
        results = await asyncio.gather(
            _settler(ledger).resolve_market(market.id, True),
            _settler(ledger).resolve_market(market.id, True),
            return_exceptions=True,
        )
        assert sum(isinstance(r, AlreadyResolvedError) for r in results) == 1
        assert (await ledger.get_user("alice")).bankroll == 1064

    async def test_no_participants(self, ledger) -> None:
        market = await _market_with_bets(ledger, [])
        with pytest.raises(NoParticipantsError):
            await _settler(ledger).resolve_market(market.id, True)
        assert (await ledger.get_market(market.id)).resolved is False

    async def test_unknown_market(self, ledger) -> None:
        with pytest.raises(MarketNotFoundError):
            await _settler(ledger).resolve_market("market_nope", True)

    async def test_expired_market_can_still_be_resolved(self, ledger) -> None:
        market = await _market_with_bets(ledger, [("alice", 40, 0.6)])
        assert RESOLVED_AT > market.deadline
        settlements = await _settler(ledger).resolve_market(market.id, True)
        assert len(settlements) == 1


class TestResolveMarketWithMockLedger:
    def _ledger(self, market: Market, bets: list[Bet]) -> AsyncMock:
        ledger = AsyncMock()
        ledger.get_market.return_value = market
        ledger.list_bets.return_value = bets
        return ledger

    def _market(self, resolved: bool = False) -> Market:
        return Market(
            id="market_1", question="Q?", creator="carol",
            deadline=NOW, total_stake=40, resolved=resolved,
        )

    async def test_commits_all_settlements_in_one_call(self) -> None:
        bets = [
            Bet(market_id="market_1", user_id="alice", stake=40, probability=0.6),
            Bet(market_id="market_1", user_id="bob", stake=60, probability=0.9),
        ]
        ledger = self._ledger(self._market(), bets)
        await _settler(ledger).resolve_market("market_1", True)
        ledger.commit_resolution.assert_awaited_once()
        market_id, outcome, resolved_at, settlements = ledger.commit_resolution.await_args.args
        assert (market_id, outcome, resolved_at) == ("market_1", True, RESOLVED_AT)
        assert [s.payout for s in settlements] == [64, 114]
        ledger.apply_user_update.assert_not_awaited()

    async def test_already_resolved_never_reads_bets(self) -> None:
        ledger = self._ledger(self._market(resolved=True), [])
        with pytest.raises(AlreadyResolvedError):
            await _settler(ledger).resolve_market("market_1", True)
        ledger.list_bets.assert_not_awaited()
        ledger.commit_resolution.assert_not_awaited()

    async def test_persistence_failure_propagates(self) -> None:
        bets = [Bet(market_id="market_1", user_id="alice", stake=40, probability=0.6)]
        ledger = self._ledger(self._market(), bets)
        ledger.commit_resolution.side_effect = PersistenceFailureError("db down")
        with pytest.raises(PersistenceFailureError):
            await _settler(ledger).resolve_market("market_1", True)
