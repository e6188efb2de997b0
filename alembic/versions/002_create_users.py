"""002: create users table

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id                  VARCHAR(255)        PRIMARY KEY,
            bankroll            INT                 NOT NULL DEFAULT 1000,
            total_staked        INT                 NOT NULL DEFAULT 0,
            bets_placed         INT                 NOT NULL DEFAULT 0,
            bets_won            INT                 NOT NULL DEFAULT 0,
            accuracy            DOUBLE PRECISION    NOT NULL DEFAULT 0.5,
            total_profit        INT                 NOT NULL DEFAULT 0,
            biggest_win         INT                 NOT NULL DEFAULT 0,
            prediction_streak   INT                 NOT NULL DEFAULT 0,
            best_streak         INT                 NOT NULL DEFAULT 0,
            markets_created     INT                 NOT NULL DEFAULT 0,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            last_active         TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_total_staked_gte_0      CHECK (total_staked >= 0),
            CONSTRAINT ck_users_staked_within_bankroll  CHECK (total_staked <= bankroll),
            CONSTRAINT ck_users_won_lte_placed          CHECK (bets_won <= bets_placed),
            CONSTRAINT ck_users_accuracy_range          CHECK (accuracy >= 0 AND accuracy <= 1)
        );
    """)
    op.execute("CREATE INDEX idx_users_bets_placed ON users (bets_placed);")
    op.execute("COMMENT ON TABLE users IS 'Participants: play-money bankroll, open stake, performance stats';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
