"""create shop services

Revision ID: 20261020_04
Revises: 20261013_03
Create Date: 2026-10-20 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261020_04"
down_revision: Union[str, None] = "20261013_03"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "shop_services",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("shop_id", "name", name="uq_shop_services_shop_name"),
        sa.CheckConstraint("price >= 0", name="ck_shop_services_price"),
    )
    op.create_index("ix_shop_services_id", "shop_services", ["id"], unique=False)
    op.create_index("ix_shop_services_shop_id", "shop_services", ["shop_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_shop_services_shop_id", table_name="shop_services")
    op.drop_index("ix_shop_services_id", table_name="shop_services")
    op.drop_table("shop_services")
