"""006: create stock ledger, restock session and stock audit tables

Revision ID: 006
Revises: 005
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE restock_sessions (
            id          UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            notes       VARCHAR(500),
            created_by  UUID         REFERENCES accounts (id) ON DELETE SET NULL,
            created_at  TIMESTAMPTZ  NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TABLE restock_items (
            id                  UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            restock_session_id  UUID         NOT NULL REFERENCES restock_sessions (id) ON DELETE CASCADE,
            item_id             UUID         NOT NULL REFERENCES items (id) ON DELETE CASCADE,
            previous_quantity   INTEGER      NOT NULL,
            new_quantity        INTEGER      NOT NULL,
            quantity_change     INTEGER      NOT NULL,
            notes               VARCHAR(500)
        );
    """)
    op.execute("""
        CREATE TABLE stock_audits (
            id            UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            notes         VARCHAR(500),
            status        VARCHAR(16)  NOT NULL DEFAULT 'completed',
            created_by    UUID         REFERENCES accounts (id) ON DELETE SET NULL,
            created_at    TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            completed_at  TIMESTAMPTZ
        );
    """)
    op.execute("""
        CREATE TABLE stock_audit_items (
            id                  UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            audit_id            UUID         NOT NULL REFERENCES stock_audits (id) ON DELETE CASCADE,
            item_id             UUID         NOT NULL REFERENCES items (id) ON DELETE CASCADE,
            expected_quantity   INTEGER      NOT NULL,
            actual_quantity     INTEGER      NOT NULL,
            difference          INTEGER      NOT NULL,
            notes               VARCHAR(500)
        );
    """)
    op.execute("""
        CREATE TABLE stock_transactions (
            id                  UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            item_id             UUID         NOT NULL REFERENCES items (id) ON DELETE CASCADE,
            quantity_change     INTEGER      NOT NULL,
            transaction_type    VARCHAR(16)  NOT NULL,
            notes               VARCHAR(500),
            created_by          UUID         REFERENCES accounts (id) ON DELETE SET NULL,
            restock_session_id  UUID         REFERENCES restock_sessions (id) ON DELETE SET NULL,
            stock_audit_id      UUID         REFERENCES stock_audits (id) ON DELETE SET NULL,
            created_at          TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_stock_tx_change_ne_0 CHECK (quantity_change <> 0),
            CONSTRAINT ck_stock_tx_type CHECK (
                transaction_type IN ('purchase', 'sale', 'adjustment', 'reversal')
            )
        );
    """)
    op.execute(
        "CREATE INDEX idx_stock_tx_item_time ON stock_transactions (item_id, created_at DESC);"
    )
    op.execute("""
        CREATE TRIGGER trg_stock_transactions_append_only
            BEFORE UPDATE OF item_id, quantity_change, transaction_type ON stock_transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute(
        "COMMENT ON TABLE stock_transactions IS "
        "'Stock ledger — Append-Only; initial_stock_quantity + SUM(quantity_change) = stock_quantity';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS stock_transactions CASCADE;")
    op.execute("DROP TABLE IF EXISTS stock_audit_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS stock_audits CASCADE;")
    op.execute("DROP TABLE IF EXISTS restock_items CASCADE;")
    op.execute("DROP TABLE IF EXISTS restock_sessions CASCADE;")
