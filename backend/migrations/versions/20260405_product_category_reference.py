"""Product category reference for revenue by category

Revision ID: 20260405_product_category
Revises: 20260301_initial_commerce
Create Date: 2026-04-05
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20260405_product_category"
down_revision = "20260301_initial_commerce"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.add_column(sa.Column("category_id", sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column("category_name", sa.String(length=128), nullable=True))
        batch_op.create_index("ix_products_category_id", ["category_id"], unique=False)


def downgrade():
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.drop_index("ix_products_category_id")
        batch_op.drop_column("category_name")
        batch_op.drop_column("category_id")
