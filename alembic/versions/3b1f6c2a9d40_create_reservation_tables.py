"""Create resources, reservations, availability and alert tables

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2025-05-20 10:12:31.402117

"""

import sqlalchemy as sa

from alembic import op  # type: ignore[attr-defined]
from reservation_engine.config import SCHEMA

# revision identifiers, used by Alembic.
revision = "3b1f6c2a9d40"
down_revision = None
branch_labels = None
depends_on = None

OCCUPYING = "status IN ('accepted', 'confirmed')"


def _fk(table: str) -> str:
    return f"{SCHEMA}.{table}.id" if SCHEMA else f"{table}.id"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "resources",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("resource_type", sa.String(16), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_resources_owner_id", "resources", ["owner_id"], schema=SCHEMA)

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "resource_id",
            sa.String(64),
            sa.ForeignKey(_fk("resources"), ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("resource_type", sa.String(16), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("deposit_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("guest_count_men", sa.Integer(), nullable=True),
        sa.Column("guest_count_women", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("origin", sa.String(16), nullable=False, server_default="customer"),
        sa.Column("refund_status", sa.String(16), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_reservations_customer_id", "reservations", ["customer_id"], schema=SCHEMA
    )
    op.create_index(
        "ix_reservations_resource_day", "reservations", ["resource_id", "date"], schema=SCHEMA
    )
    op.create_index(
        "uq_reservations_occupying_day",
        "reservations",
        ["resource_id", "date"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text(OCCUPYING),
        sqlite_where=sa.text(OCCUPYING),
    )

    op.create_table(
        "reservation_status_history",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "reservation_id",
            sa.String(36),
            sa.ForeignKey(_fk("reservations"), ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(16), nullable=True),
        sa.Column("to_status", sa.String(16), nullable=False),
        sa.Column("actor_id", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column(
            "changed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_reservation_status_history_reservation_id",
        "reservation_status_history",
        ["reservation_id"],
        schema=SCHEMA,
    )

    op.create_table(
        "availability",
        sa.Column(
            "resource_id",
            sa.String(64),
            sa.ForeignKey(_fk("resources"), ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("date", sa.Date(), primary_key=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("resale_discount", sa.Integer(), nullable=True),
        sa.Column("reservation_id", sa.String(36), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.CheckConstraint(
            "resale_discount IS NULL OR (resale_discount >= 5 AND resale_discount <= 50)",
            name="ck_availability_resale_discount",
        ),
        schema=SCHEMA,
    )

    op.create_table(
        "side_effect_failures",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.String(36), nullable=False),
        sa.Column("resource_id", sa.String(64), nullable=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_side_effect_failures_reservation_id",
        "side_effect_failures",
        ["reservation_id"],
        schema=SCHEMA,
    )
    op.create_index(
        "ix_side_effect_failures_resource_id",
        "side_effect_failures",
        ["resource_id"],
        schema=SCHEMA,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("side_effect_failures", schema=SCHEMA)
    op.drop_table("availability", schema=SCHEMA)
    op.drop_table("reservation_status_history", schema=SCHEMA)
    op.drop_index("uq_reservations_occupying_day", table_name="reservations", schema=SCHEMA)
    op.drop_table("reservations", schema=SCHEMA)
    op.drop_table("resources", schema=SCHEMA)
