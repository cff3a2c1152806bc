"""create storeroom tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# même type que les modèles : INTEGER PRIMARY KEY (rowid) sous SQLite
PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
request_status = sa.Enum("PENDING", "APPROVED", "RETURNED", name="request_status")
usage_type = sa.Enum("add", "remove", name="usage_type")


def upgrade() -> None:
    op.create_table(
        "categories",
        sa.Column("id", PK, primary_key=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
    )

    op.create_table(
        "components",
        sa.Column("id", PK, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit", sa.String(32), nullable=False, server_default="pcs"),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("location", sa.String(255), nullable=False, server_default=""),
        sa.Column("supplier", sa.String(255), nullable=False, server_default=""),
        sa.Column("image_url", sa.Text(), nullable=False, server_default=""),
        sa.Column("category_id", PK, sa.ForeignKey("categories.id", ondelete="SET NULL")),
        sa.Column("category_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("consumable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity >= 0", name="ck_component_quantity_nonneg"),
        sa.CheckConstraint("min_stock >= 0", name="ck_component_min_stock_nonneg"),
    )

    op.create_table(
        "requests",
        sa.Column("id", PK, primary_key=True),
        sa.Column("personnel_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("department", sa.String(128)),
        sa.Column("status", request_status, nullable=False, server_default="PENDING"),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("returned_at", sa.DateTime(timezone=True)),
        sa.Column("expected_return_date", sa.Date()),
        sa.Column("face_image", sa.Text()),
    )
    op.create_index("ix_requests_status_requested", "requests", ["status", "requested_at"])

    op.create_table(
        "request_items",
        sa.Column(
            "request_id",
            PK,
            sa.ForeignKey("requests.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "component_id",
            PK,
            sa.ForeignKey("components.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.CheckConstraint("quantity > 0", name="ck_request_item_qty_pos"),
    )

    op.create_table(
        "usage_history",
        sa.Column("id", PK, primary_key=True),
        sa.Column(
            "component_id",
            PK,
            sa.ForeignKey("components.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("request_id", PK, sa.ForeignKey("requests.id", ondelete="SET NULL")),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("type", usage_type, nullable=False),
        sa.Column("project", sa.String(255), nullable=False, server_default=""),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity <> 0", name="ck_usage_quantity_nonzero"),
    )
    op.create_index("ix_usage_history_component_id", "usage_history", ["component_id"])
    op.create_index("ix_usage_history_component_date", "usage_history", ["component_id", "date"])

    op.create_table(
        "audit_log",
        sa.Column("id", PK, primary_key=True),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(64), nullable=False),
        sa.Column("entity_id", sa.String(64), nullable=False),
        sa.Column("meta", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_usage_history_component_date", table_name="usage_history")
    op.drop_index("ix_usage_history_component_id", table_name="usage_history")
    op.drop_table("usage_history")
    op.drop_table("request_items")
    op.drop_index("ix_requests_status_requested", table_name="requests")
    op.drop_table("requests")
    op.drop_table("components")
    op.drop_table("categories")

    # Postgres : les types ENUM survivent au DROP TABLE
    usage_type.drop(op.get_bind(), checkfirst=True)
    request_status.drop(op.get_bind(), checkfirst=True)
