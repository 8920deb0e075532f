"""005: create transaction_reversals table

Revision ID: 005
Revises: 004
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transaction_reversals (
            id                      UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            account_id              UUID         NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
            original_event_id       UUID         NOT NULL,
            original_event_type     VARCHAR(16)  NOT NULL,
            reason                  VARCHAR(500) NOT NULL,
            reversed_by             UUID         REFERENCES accounts (id) ON DELETE SET NULL,
            adjustment_id           UUID         REFERENCES adjustments (id) ON DELETE SET NULL
                                                 DEFERRABLE INITIALLY DEFERRED,
            created_at              TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_reversals_original_event UNIQUE (original_event_id, original_event_type),
            CONSTRAINT ck_reversals_event_type CHECK (original_event_type IN ('consumption', 'topup'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_reversals_account ON transaction_reversals (account_id, created_at DESC);"
    )
    op.execute("""
        CREATE TRIGGER trg_transaction_reversals_append_only
            BEFORE UPDATE OF original_event_id, original_event_type, account_id
            ON transaction_reversals
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute(
        "COMMENT ON CONSTRAINT uq_reversals_original_event ON transaction_reversals IS "
        "'Idempotency gate: at most one reversal per original event';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transaction_reversals CASCADE;")
