"""create users, shops and shop staff

Revision ID: 20261012_01
Revises:
Create Date: 2026-10-12 09:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261012_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("hashed_password", sa.String(length=255), nullable=False),
        sa.Column("platform_role", sa.String(length=20), nullable=False, server_default="customer"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_users_id", "users", ["id"], unique=False)
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_shops_id", "shops", ["id"], unique=False)

    op.create_table(
        "shop_staff",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("shop_id", "user_id", name="uq_shop_staff_shop_user"),
        sa.CheckConstraint("role IN ('owner', 'admin', 'manager', 'barber')", name="ck_shop_staff_role"),
    )
    op.create_index("ix_shop_staff_id", "shop_staff", ["id"], unique=False)
    op.create_index("ix_shop_staff_shop_id", "shop_staff", ["shop_id"], unique=False)
    op.create_index("ix_shop_staff_user_id", "shop_staff", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_shop_staff_user_id", table_name="shop_staff")
    op.drop_index("ix_shop_staff_shop_id", table_name="shop_staff")
    op.drop_index("ix_shop_staff_id", table_name="shop_staff")
    op.drop_table("shop_staff")
    op.drop_index("ix_shops_id", table_name="shops")
    op.drop_table("shops")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
