"""SqlMarketLedger: PostgreSQL implementation of MarketLedgerProtocol.

All queries use raw text() SQL (no ORM).

Transaction ownership: every public method runs in its own
`async with session.begin()` block, so a method either commits all of its
statements or none of them. Balance-like columns are always updated relative
to the stored row (x = x + :delta), never overwritten from a value read
earlier, and the guarded UPDATE ... RETURNING pattern is used where a
business rule must hold at write time: 0 rows back means the rule failed and
the transaction is rolled back.

SQLAlchemyError is translated to PersistenceFailureError; AppError subclasses
raised inside a transaction pass through after rollback.
"""

import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.pm_common.enums import LeaderboardKind
from src.pm_common.errors import (
    AlreadyResolvedError,
    DuplicateIdError,
    InsufficientBankrollError,
    InternalError,
    MarketNotFoundError,
    PersistenceFailureError,
)
from src.pm_ledger.domain.models import STARTING_BANKROLL, Bet, Market, User
from src.pm_ledger.domain.repository import (
    LEADERBOARD_MIN_BETS,
    MARKET_UPDATABLE_FIELDS,
    USER_UPDATABLE_FIELDS,
    check_update_fields,
    settlements_cover,
)
from src.pm_settlement.domain.settlement import BetSettlement

logger = logging.getLogger(__name__)

_USER_COLUMNS = """
    id, bankroll, total_staked, bets_placed, bets_won, accuracy,
    total_profit, biggest_win, prediction_streak, best_streak,
    markets_created, created_at, last_active
"""

_MARKET_COLUMNS = """
    id, question, creator, deadline, probability, total_stake,
    active, resolved, resolution, resolved_at, created_at
"""

_BET_COLUMNS = "market_id, user_id, stake, probability, created_at, updated_at"

# ---------------------------------------------------------------------------
# SQL: users
# ---------------------------------------------------------------------------

_GET_OR_CREATE_USER_SQL = text(f"""
    INSERT INTO users (id, bankroll, last_active)
    VALUES (:user_id, :bankroll, NOW())
    ON CONFLICT (id) DO UPDATE
        SET last_active = NOW()
    RETURNING {_USER_COLUMNS}
""")

_GET_USER_SQL = text(f"SELECT {_USER_COLUMNS} FROM users WHERE id = :user_id")

_BUMP_MARKETS_CREATED_SQL = text("""
    INSERT INTO users (id, bankroll, markets_created, last_active)
    VALUES (:user_id, :bankroll, 1, NOW())
    ON CONFLICT (id) DO UPDATE
        SET markets_created = users.markets_created + 1,
            last_active = NOW()
""")

# Solvency is re-checked here so two concurrent placements by the same user
# on different markets cannot over-reserve the bankroll.
_ADD_TOTAL_STAKED_SQL = text("""
    UPDATE users
    SET total_staked = total_staked + :delta,
        last_active = NOW()
    WHERE id = :user_id
      AND total_staked + :delta <= bankroll
    RETURNING id
""")

_SETTLE_USER_SQL = text("""
    UPDATE users
    SET bankroll          = bankroll + :payout,
        total_staked      = total_staked - :stake,
        bets_placed       = bets_placed + 1,
        bets_won          = bets_won + :won,
        accuracy          = CAST(bets_won + :won AS DOUBLE PRECISION) / (bets_placed + 1),
        total_profit      = total_profit + :payout - :stake,
        biggest_win       = GREATEST(biggest_win, :payout),
        prediction_streak = CASE WHEN :won = 1 THEN prediction_streak + 1 ELSE 0 END,
        best_streak       = GREATEST(
                                best_streak,
                                CASE WHEN :won = 1 THEN prediction_streak + 1 ELSE 0 END
                            ),
        last_active       = NOW()
    WHERE id = :user_id
    RETURNING id
""")

# Open stake stays reserved, so bankroll never drops below it.
_RESET_USER_STATS_SQL = text(f"""
    UPDATE users
    SET bankroll          = GREATEST(:bankroll, total_staked),
        bets_placed       = 0,
        bets_won          = 0,
        accuracy          = 0.5,
        total_profit      = 0,
        biggest_win       = 0,
        prediction_streak = 0,
        best_streak       = 0,
        markets_created   = 0,
        last_active       = NOW()
    WHERE id = :user_id
    RETURNING {_USER_COLUMNS}
""")

_LEADERBOARD_ORDER: dict[LeaderboardKind, str] = {
    LeaderboardKind.ACCURACY: "accuracy DESC, bets_placed DESC",
    LeaderboardKind.PROFIT: "total_profit DESC, bankroll DESC",
    LeaderboardKind.VOLUME: "bets_placed DESC, markets_created DESC",
    LeaderboardKind.STREAK: "best_streak DESC, prediction_streak DESC, accuracy DESC",
}

_LEADERBOARD_SQL = {
    kind: text(f"""
        SELECT {_USER_COLUMNS}
        FROM users
        WHERE bets_placed >= :min_bets
        ORDER BY {order}, id
        LIMIT :limit
    """)
    for kind, order in _LEADERBOARD_ORDER.items()
}

# ---------------------------------------------------------------------------
# SQL: markets
# ---------------------------------------------------------------------------

_GET_MARKET_SQL = text(f"SELECT {_MARKET_COLUMNS} FROM markets WHERE id = :market_id")

_INSERT_MARKET_SQL = text("""
    INSERT INTO markets (id, question, creator, deadline, probability, total_stake, active)
    VALUES (:id, :question, :creator, :deadline, :probability, :total_stake, :active)
    ON CONFLICT (id) DO NOTHING
    RETURNING id
""")

_LIST_OPEN_MARKETS_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE active = TRUE AND resolved = FALSE
    ORDER BY created_at DESC, id DESC
""")

_SET_MARKET_PRICE_SQL = text("""
    UPDATE markets
    SET probability = :probability,
        total_stake = :total_stake
    WHERE id = :market_id AND resolved = FALSE
    RETURNING id
""")

# Check-then-set in one statement: only the first resolver gets a row back.
_RESOLVE_MARKET_SQL = text("""
    UPDATE markets
    SET resolved = TRUE,
        resolution = :outcome,
        resolved_at = :resolved_at
    WHERE id = :market_id AND resolved = FALSE
    RETURNING id
""")

# ---------------------------------------------------------------------------
# SQL: bets
# ---------------------------------------------------------------------------

_GET_BET_SQL = text(f"""
    SELECT {_BET_COLUMNS}
    FROM bets
    WHERE market_id = :market_id AND user_id = :user_id
""")

_LIST_BETS_SQL = text(f"""
    SELECT {_BET_COLUMNS}
    FROM bets
    WHERE market_id = :market_id
    ORDER BY created_at, user_id
""")

_UPSERT_BET_SQL = text("""
    INSERT INTO bets (market_id, user_id, stake, probability)
    VALUES (:market_id, :user_id, :stake, :probability)
    ON CONFLICT (market_id, user_id) DO UPDATE
        SET stake = EXCLUDED.stake,
            probability = EXCLUDED.probability,
            updated_at = NOW()
""")

# ---------------------------------------------------------------------------
# Row mappers
# ---------------------------------------------------------------------------


def _row_to_user(row: object) -> User:
    return User(
        id=row.id,  # type: ignore[attr-defined]
        bankroll=row.bankroll,  # type: ignore[attr-defined]
        total_staked=row.total_staked,  # type: ignore[attr-defined]
        bets_placed=row.bets_placed,  # type: ignore[attr-defined]
        bets_won=row.bets_won,  # type: ignore[attr-defined]
        accuracy=float(row.accuracy),  # type: ignore[attr-defined]
        total_profit=row.total_profit,  # type: ignore[attr-defined]
        biggest_win=row.biggest_win,  # type: ignore[attr-defined]
        prediction_streak=row.prediction_streak,  # type: ignore[attr-defined]
        best_streak=row.best_streak,  # type: ignore[attr-defined]
        markets_created=row.markets_created,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        last_active=row.last_active,  # type: ignore[attr-defined]
    )


def _row_to_market(row: object) -> Market:
    return Market(
        id=row.id,  # type: ignore[attr-defined]
        question=row.question,  # type: ignore[attr-defined]
        creator=row.creator,  # type: ignore[attr-defined]
        deadline=row.deadline,  # type: ignore[attr-defined]
        probability=float(row.probability),  # type: ignore[attr-defined]
        total_stake=row.total_stake,  # type: ignore[attr-defined]
        active=row.active,  # type: ignore[attr-defined]
        resolved=row.resolved,  # type: ignore[attr-defined]
        resolution=row.resolution,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


def _row_to_bet(row: object) -> Bet:
    return Bet(
        market_id=row.market_id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        stake=row.stake,  # type: ignore[attr-defined]
        probability=float(row.probability),  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _update_sql(table: str, key: str, fields: Mapping[str, Any]) -> Any:
    # Column names come from the *_UPDATABLE_FIELDS whitelists, never from callers.
    assignments = ", ".join(f"{name} = :{name}" for name in fields)
    return text(f"UPDATE {table} SET {assignments} WHERE {key} = :_key RETURNING {key}")


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


class SqlMarketLedger:
    """Concrete ledger: one transaction per public method."""

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        if session_factory is None:
            from src.pm_common.database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as db, db.begin():
                yield db
        except SQLAlchemyError as exc:
            logger.exception("Ledger transaction rolled back")
            raise PersistenceFailureError(
                f"Storage operation failed: {exc.__class__.__name__}"
            ) from exc

    # --- users ---

    async def get_or_create_user(self, user_id: str) -> User:
        async with self._transaction() as db:
            result = await db.execute(
                _GET_OR_CREATE_USER_SQL,
                {"user_id": user_id, "bankroll": STARTING_BANKROLL},
            )
            row = result.fetchone()
            if row is None:
                raise InternalError("User upsert returned no rows")
            return _row_to_user(row)

    async def get_user(self, user_id: str) -> User | None:
        async with self._transaction() as db:
            row = (await db.execute(_GET_USER_SQL, {"user_id": user_id})).fetchone()
            return _row_to_user(row) if row else None

    async def apply_user_update(self, user_id: str, fields: Mapping[str, Any]) -> None:
        check_update_fields(fields, USER_UPDATABLE_FIELDS)
        if not fields:
            return
        async with self._transaction() as db:
            result = await db.execute(
                _update_sql("users", "id", fields), {**fields, "_key": user_id}
            )
            if result.fetchone() is None:
                raise InternalError(f"User not found: {user_id}")

    async def reset_user_stats(self, user_id: str) -> User | None:
        async with self._transaction() as db:
            result = await db.execute(
                _RESET_USER_STATS_SQL,
                {"user_id": user_id, "bankroll": STARTING_BANKROLL},
            )
            row = result.fetchone()
            return _row_to_user(row) if row else None

    async def leaderboard(self, kind: LeaderboardKind, limit: int) -> list[User]:
        async with self._transaction() as db:
            result = await db.execute(
                _LEADERBOARD_SQL[kind],
                {"min_bets": LEADERBOARD_MIN_BETS[kind], "limit": limit},
            )
            return [_row_to_user(row) for row in result.fetchall()]

    # --- markets ---

    async def get_market(self, market_id: str) -> Market | None:
        async with self._transaction() as db:
            row = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
            return _row_to_market(row) if row else None

    async def create_market(self, market: Market) -> None:
        async with self._transaction() as db:
            result = await db.execute(
                _INSERT_MARKET_SQL,
                {
                    "id": market.id,
                    "question": market.question,
                    "creator": market.creator,
                    "deadline": market.deadline,
                    "probability": market.probability,
                    "total_stake": market.total_stake,
                    "active": market.active,
                },
            )
            if result.fetchone() is None:
                raise DuplicateIdError(market.id)
            await db.execute(
                _BUMP_MARKETS_CREATED_SQL,
                {"user_id": market.creator, "bankroll": STARTING_BANKROLL},
            )

    async def list_open_markets(self) -> list[Market]:
        async with self._transaction() as db:
            result = await db.execute(_LIST_OPEN_MARKETS_SQL)
            return [_row_to_market(row) for row in result.fetchall()]

    async def apply_market_update(
        self, market_id: str, fields: Mapping[str, Any]
    ) -> None:
        check_update_fields(fields, MARKET_UPDATABLE_FIELDS)
        if not fields:
            return
        async with self._transaction() as db:
            result = await db.execute(
                _update_sql("markets", "id", fields), {**fields, "_key": market_id}
            )
            if result.fetchone() is None:
                raise MarketNotFoundError(market_id)

    # --- bets ---

    async def get_open_bet(self, market_id: str, user_id: str) -> Bet | None:
        async with self._transaction() as db:
            row = (
                await db.execute(_GET_BET_SQL, {"market_id": market_id, "user_id": user_id})
            ).fetchone()
            return _row_to_bet(row) if row else None

    async def list_bets(self, market_id: str) -> list[Bet]:
        async with self._transaction() as db:
            result = await db.execute(_LIST_BETS_SQL, {"market_id": market_id})
            return [_row_to_bet(row) for row in result.fetchall()]

    async def upsert_bet(
        self, market_id: str, user_id: str, stake: int, probability: float
    ) -> None:
        async with self._transaction() as db:
            await db.execute(
                _UPSERT_BET_SQL,
                {
                    "market_id": market_id,
                    "user_id": user_id,
                    "stake": stake,
                    "probability": probability,
                },
            )

    # --- atomic commits ---

    async def commit_bet_placement(
        self,
        market_id: str,
        user_id: str,
        stake: int,
        probability: float,
        new_market_probability: float,
        new_total_stake: int,
        user_total_staked_delta: int,
    ) -> None:
        async with self._transaction() as db:
            staked = await db.execute(
                _ADD_TOTAL_STAKED_SQL,
                {"user_id": user_id, "delta": user_total_staked_delta},
            )
            if staked.fetchone() is None:
                row = (await db.execute(_GET_USER_SQL, {"user_id": user_id})).fetchone()
                available = row.bankroll - row.total_staked if row else 0
                raise InsufficientBankrollError(user_total_staked_delta, available)

            # The user row is locked from here on, so this user's bet cannot move.
            held = (
                await db.execute(_GET_BET_SQL, {"market_id": market_id, "user_id": user_id})
            ).fetchone()
            if (held.stake if held else 0) != stake - user_total_staked_delta:
                raise PersistenceFailureError("Bet changed while placing; retry")

            await db.execute(
                _UPSERT_BET_SQL,
                {
                    "market_id": market_id,
                    "user_id": user_id,
                    "stake": stake,
                    "probability": probability,
                },
            )

            priced = await db.execute(
                _SET_MARKET_PRICE_SQL,
                {
                    "market_id": market_id,
                    "probability": new_market_probability,
                    "total_stake": new_total_stake,
                },
            )
            if priced.fetchone() is None:
                # resolved between the caller's read and this commit, or gone
                exists = (
                    await db.execute(_GET_MARKET_SQL, {"market_id": market_id})
                ).fetchone()
                if exists is None:
                    raise MarketNotFoundError(market_id)
                raise AlreadyResolvedError(market_id)

    async def commit_resolution(
        self,
        market_id: str,
        outcome: bool,
        resolved_at: datetime,
        settlements: Sequence[BetSettlement],
    ) -> None:
        async with self._transaction() as db:
            flipped = await db.execute(
                _RESOLVE_MARKET_SQL,
                {"market_id": market_id, "outcome": outcome, "resolved_at": resolved_at},
            )
            if flipped.fetchone() is None:
                exists = (
                    await db.execute(_GET_MARKET_SQL, {"market_id": market_id})
                ).fetchone()
                if exists is None:
                    raise MarketNotFoundError(market_id)
                raise AlreadyResolvedError(market_id)

            # The market row is now locked, so no placement can commit past this
            # point. One that committed before it would be missing from settlements.
            current = (await db.execute(_LIST_BETS_SQL, {"market_id": market_id})).fetchall()
            if not settlements_cover([_row_to_bet(r) for r in current], settlements):
                raise PersistenceFailureError("Bets changed while resolving; retry")

            for s in settlements:
                settled = await db.execute(
                    _SETTLE_USER_SQL,
                    {
                        "user_id": s.user_id,
                        "payout": s.payout,
                        "stake": s.stake,
                        "won": 1 if s.was_correct else 0,
                    },
                )
                if settled.fetchone() is None:
                    raise InternalError(f"Settlement for unknown user {s.user_id}")
