"""004: create bets table

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bets (
            id              BIGSERIAL           PRIMARY KEY,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets(id),
            user_id         VARCHAR(255)        NOT NULL REFERENCES users(id),
            stake           INT                 NOT NULL,
            probability     DOUBLE PRECISION    NOT NULL,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bets_market_user      UNIQUE (market_id, user_id),
            CONSTRAINT ck_bets_stake_range      CHECK (stake >= 1 AND stake <= 100),
            CONSTRAINT ck_bets_probability      CHECK (probability >= 0 AND probability <= 1)
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_bets_updated_at
            BEFORE UPDATE ON bets
            FOR EACH ROW EXECUTE FUNCTION fn_touch_updated_at();
    """)
    op.execute("COMMENT ON TABLE bets IS 'One open bet per (market, user); re-betting replaces the row';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bets CASCADE;")
