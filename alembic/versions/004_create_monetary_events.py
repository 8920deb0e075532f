"""004: create consumptions, top_ups and adjustments tables

Revision ID: 004
Revises: 003
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE consumptions (
            id              UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            account_id      UUID         NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
            item_id         UUID         REFERENCES items (id) ON DELETE SET NULL,
            price_cents     INTEGER      NOT NULL,
            source          VARCHAR(8)   NOT NULL DEFAULT 'tap',
            client_id       VARCHAR(64),
            note            VARCHAR(500),
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_consumptions_client_id UNIQUE (client_id),
            CONSTRAINT ck_consumptions_price_gte_0 CHECK (price_cents >= 0),
            CONSTRAINT ck_consumptions_source CHECK (source IN ('tap', 'qr', 'admin'))
        );
    """)
    op.execute(
        "CREATE INDEX idx_consumptions_account_time ON consumptions (account_id, created_at DESC);"
    )

    op.execute("""
        CREATE TABLE top_ups (
            id              UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            account_id      UUID         NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
            amount_cents    INTEGER      NOT NULL,
            provider        VARCHAR(16)  NOT NULL,
            provider_ref    VARCHAR(255) NOT NULL,
            status          VARCHAR(16)  NOT NULL DEFAULT 'pending',
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_top_ups_provider_ref UNIQUE (provider_ref),
            CONSTRAINT ck_top_ups_amount_gt_0 CHECK (amount_cents > 0),
            CONSTRAINT ck_top_ups_provider CHECK (provider IN ('stripe', 'cash', 'banktransfer')),
            CONSTRAINT ck_top_ups_status CHECK (status IN ('pending', 'paid', 'failed', 'cancelled'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_top_ups_updated_at
            BEFORE UPDATE ON top_ups
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute(
        "CREATE INDEX idx_top_ups_account_paid ON top_ups (account_id) WHERE status = 'paid';"
    )

    op.execute("""
        CREATE TABLE adjustments (
            id              UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            account_id      UUID         NOT NULL REFERENCES accounts (id) ON DELETE CASCADE,
            delta_cents     INTEGER      NOT NULL,
            reason          VARCHAR(500) NOT NULL,
            created_by      UUID         REFERENCES accounts (id) ON DELETE SET NULL,
            created_at      TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_adjustments_delta_ne_0 CHECK (delta_cents <> 0)
        );
    """)
    op.execute(
        "CREATE INDEX idx_adjustments_account_time ON adjustments (account_id, created_at DESC);"
    )

    # Money columns are immutable; FK SET NULL on item/creator deletes stays allowed.
    op.execute("""
        CREATE TRIGGER trg_consumptions_append_only
            BEFORE UPDATE OF account_id, price_cents, source, created_at ON consumptions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute("""
        CREATE TRIGGER trg_adjustments_append_only
            BEFORE UPDATE OF account_id, delta_cents, reason, created_at ON adjustments
            FOR EACH ROW EXECUTE FUNCTION fn_reject_update();
    """)
    op.execute("COMMENT ON TABLE consumptions IS 'Purchases — Append-Only, all amounts in cents';")
    op.execute("COMMENT ON TABLE adjustments IS 'Manual corrections and reversal refunds — Append-Only';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS adjustments CASCADE;")
    op.execute("DROP TABLE IF EXISTS top_ups CASCADE;")
    op.execute("DROP TABLE IF EXISTS consumptions CASCADE;")
