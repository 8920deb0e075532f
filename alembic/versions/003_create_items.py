"""003: create items and mixed_drink_components tables

Revision ID: 003
Revises: 002
Create Date: 2026-10-05
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE items (
            id                      UUID         PRIMARY KEY DEFAULT gen_random_uuid(),
            name                    VARCHAR(128) NOT NULL,
            price_cents             INTEGER      NOT NULL,
            purchase_price_cents    INTEGER      NOT NULL DEFAULT 0,
            stock_quantity          INTEGER,
            initial_stock_quantity  INTEGER,
            low_stock_threshold     INTEGER,
            active                  BOOLEAN      NOT NULL DEFAULT TRUE,
            is_mixed_drink          BOOLEAN      NOT NULL DEFAULT FALSE,
            created_at              TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            updated_at              TIMESTAMPTZ  NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_items_price_gt_0          CHECK (price_cents > 0),
            CONSTRAINT ck_items_purchase_price_gte_0 CHECK (purchase_price_cents >= 0),
            CONSTRAINT ck_items_mixed_untracked     CHECK (
                NOT is_mixed_drink OR stock_quantity IS NULL
            ),
            CONSTRAINT ck_items_initial_when_tracked CHECK (
                (stock_quantity IS NULL) = (initial_stock_quantity IS NULL)
            )
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_items_updated_at
            BEFORE UPDATE ON items
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE TABLE mixed_drink_components (
            mixed_drink_id      UUID     NOT NULL REFERENCES items (id) ON DELETE CASCADE,
            component_item_id   UUID     NOT NULL REFERENCES items (id) ON DELETE CASCADE,
            quantity            INTEGER  NOT NULL,
            PRIMARY KEY (mixed_drink_id, component_item_id),
            CONSTRAINT ck_mdc_quantity_gt_0 CHECK (quantity > 0),
            CONSTRAINT ck_mdc_not_self      CHECK (mixed_drink_id <> component_item_id)
        );
    """)
    op.execute(
        "COMMENT ON COLUMN items.stock_quantity IS "
        "'NULL = untracked; mixed drinks derive availability from components';"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS mixed_drink_components CASCADE;")
    op.execute("DROP TABLE IF EXISTS items CASCADE;")
