"""003: create markets table

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id              VARCHAR(64)         PRIMARY KEY,
            question        VARCHAR(500)        NOT NULL,
            creator         VARCHAR(255)        NOT NULL,
            deadline        TIMESTAMPTZ         NOT NULL,
            probability     DOUBLE PRECISION    NOT NULL DEFAULT 0.5,
            total_stake     INT                 NOT NULL DEFAULT 0,
            active          BOOLEAN             NOT NULL DEFAULT TRUE,
            resolved        BOOLEAN             NOT NULL DEFAULT FALSE,
            resolution      BOOLEAN,
            resolved_at     TIMESTAMPTZ,
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_probability_range CHECK (probability >= 0 AND probability <= 1),
            CONSTRAINT ck_markets_total_stake_gte_0 CHECK (total_stake >= 0),
            CONSTRAINT ck_markets_resolution CHECK (
                (resolved = FALSE AND resolution IS NULL AND resolved_at IS NULL)
                OR (resolved = TRUE AND resolution IS NOT NULL AND resolved_at IS NOT NULL)
            )
        );
    """)
    op.execute(
        "CREATE INDEX idx_markets_open ON markets (created_at DESC) "
        "WHERE active = TRUE AND resolved = FALSE;"
    )
    op.execute("COMMENT ON TABLE markets IS 'Yes/no questions with their stake-weighted consensus probability';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
