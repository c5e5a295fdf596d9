"""Initial ledger tables

Revision ID: 20261018_000001
Revises: 
Create Date: 2026-10-18 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "trip_batch",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=8), nullable=False, server_default="EMPTY", index=True),
        sa.Column("trip_file_hash", sa.String(), nullable=True, index=True),
        sa.Column("invoice_file_hash", sa.String(), nullable=True),
        sa.Column("trips_imported_at", sa.DateTime(), nullable=True),
        sa.Column("invoice_imported_at", sa.DateTime(), nullable=True),
        sa.Column("projection_locked_at", sa.DateTime(), nullable=True),
        sa.Column("trip_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("load_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("canceled_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projected_tours", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projected_loads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projected_tour_pay", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("projected_accessorials", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("projected_total", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("actual_tours", sa.Integer(), nullable=True),
        sa.Column("actual_loads", sa.Integer(), nullable=True),
        sa.Column("actual_tour_pay", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_accessorials", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_adjustments", sa.Numeric(12, 2), nullable=True),
        sa.Column("actual_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("variance", sa.Numeric(12, 2), nullable=True),
        sa.Column("variance_percent", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "batch_file_hash",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "batch_id", sa.String(), sa.ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("feed", sa.String(length=7), nullable=False),
        sa.Column("file_hash", sa.String(), nullable=False, index=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("batch_id", "feed", "file_hash", name="uq_batch_file_hash"),
    )

    op.create_table(
        "trip",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "batch_id", sa.String(), sa.ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("trip_id", sa.String(), nullable=False, index=True),
        sa.Column("stage", sa.String(length=11), nullable=False, server_default="UPCOMING"),
        sa.Column("equipment_type", sa.String(), nullable=True),
        sa.Column("operator_type", sa.String(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=False, index=True),
        sa.Column("projected_loads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("projected_revenue", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("actual_loads", sa.Integer(), nullable=True),
        sa.Column("actual_revenue", sa.Numeric(12, 2), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("batch_id", "trip_id", name="uq_trip_batch_trip_id"),
    )

    stop_columns = []
    for slot in range(1, 8):
        stop_columns.append(sa.Column(f"stop{slot}", sa.String(), nullable=True))
        stop_columns.append(sa.Column(f"stop{slot}_planned_arrival", sa.DateTime(), nullable=True))

    op.create_table(
        "trip_load",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("trip_db_id", sa.String(), sa.ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("load_id", sa.String(), nullable=False),
        sa.Column("facility_sequence", sa.String(), nullable=True),
        sa.Column("load_execution_status", sa.String(), nullable=True),
        sa.Column("is_bobtail", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("estimated_distance", sa.Float(), nullable=False, server_default="0"),
        *stop_columns,
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "invoice_import",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "batch_id", sa.String(), sa.ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True
        ),
        sa.Column("invoice_number", sa.String(), nullable=True),
        sa.Column("file_hash", sa.String(), nullable=False),
        sa.Column("line_item_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("matched_trip_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unmatched_trip_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "invoice_line_item",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "invoice_import_id",
            sa.String(),
            sa.ForeignKey("invoice_import.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("trip_id", sa.String(), nullable=False, index=True),
        sa.Column("load_id", sa.String(), nullable=True),
        sa.Column("item_type", sa.String(length=18), nullable=False),
        sa.Column("gross_pay", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("base_rate", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("fuel_surcharge", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("detention", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tonu", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("distance_miles", sa.Float(), nullable=False, server_default="0"),
        sa.Column("duration_hours", sa.Float(), nullable=False, server_default="0"),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("matched", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("invoice_line_item")
    op.drop_table("invoice_import")
    op.drop_table("trip_load")
    op.drop_table("trip")
    op.drop_table("batch_file_hash")
    op.drop_table("trip_batch")
