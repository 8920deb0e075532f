"""002: create accounts table

Revision ID: 002
Revises: 001
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE accounts (
            id                      UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            name                    VARCHAR(128) NOT NULL,
            email                   VARCHAR(255),
            role                    VARCHAR(16)  NOT NULL DEFAULT 'ordinary',
            is_guest                BOOLEAN      NOT NULL DEFAULT FALSE,
            allow_negative_balance  BOOLEAN      NOT NULL DEFAULT FALSE,
            active                  BOOLEAN      NOT NULL DEFAULT TRUE,
            created_at              TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_accounts_email UNIQUE (email),
            CONSTRAINT ck_accounts_role CHECK (role IN ('ordinary', 'treasurer', 'admin'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Members and guest tabs — balance is derived, never stored';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
