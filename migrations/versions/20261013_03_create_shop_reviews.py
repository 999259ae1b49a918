"""create shop reviews

Revision ID: 20261013_03
Revises: 20261012_02
Create Date: 2026-10-13 11:15:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261013_03"
down_revision: Union[str, None] = "20261012_02"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "shop_reviews",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("provider_id", sa.Integer(), nullable=True),
        sa.Column("rating", sa.SmallInteger(), nullable=False),
        sa.Column("provider_rating", sa.SmallInteger(), nullable=True),
        sa.Column("review_text", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["booking_id"], ["bookings.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["provider_id"], ["users.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("booking_id", name="uq_shop_reviews_booking_id"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_shop_reviews_rating"),
    )
    op.create_index("ix_shop_reviews_id", "shop_reviews", ["id"], unique=False)
    op.create_index("ix_shop_reviews_shop_id", "shop_reviews", ["shop_id"], unique=False)
    op.create_index("ix_shop_reviews_customer_id", "shop_reviews", ["customer_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_shop_reviews_customer_id", table_name="shop_reviews")
    op.drop_index("ix_shop_reviews_shop_id", table_name="shop_reviews")
    op.drop_index("ix_shop_reviews_id", table_name="shop_reviews")
    op.drop_table("shop_reviews")
