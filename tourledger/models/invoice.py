"""Carrier invoice imports and their immutable line items."""
import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import relationship

from tourledger.models.base import Base


class InvoiceItemType(str, enum.Enum):
    TOUR_COMPLETED = "TOUR_COMPLETED"
    LOAD_COMPLETED = "LOAD_COMPLETED"
    ADJUSTMENT = "ADJUSTMENT"
    ADJUSTMENT_DISPUTE = "ADJUSTMENT_DISPUTE"


class InvoiceImport(Base):
    __tablename__ = "invoice_import"

    id = Column(String, primary_key=True)
    batch_id = Column(String, ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = Column(String, nullable=True)
    file_hash = Column(String, nullable=False)
    line_item_count = Column(Integer, nullable=False, default=0)
    matched_trip_count = Column(Integer, nullable=False, default=0)
    unmatched_trip_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())

    batch = relationship("TripBatch", back_populates="invoice_imports")
    line_items = relationship(
        "InvoiceLineItem",
        back_populates="invoice_import",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvoiceLineItem.position",
    )


class InvoiceLineItem(Base):
    __tablename__ = "invoice_line_item"

    id = Column(String, primary_key=True)
    invoice_import_id = Column(String, ForeignKey("invoice_import.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)

    trip_id = Column(String, nullable=False, index=True)  # Not enforced against trip.trip_id
    load_id = Column(String, nullable=True)
    item_type = Column(
        Enum(InvoiceItemType, name="invoice_item_type", native_enum=False, values_callable=lambda enum_class: [e.value for e in enum_class]),
        nullable=False,
    )
    gross_pay = Column(Numeric(12, 2), nullable=False, default=0)
    base_rate = Column(Numeric(12, 2), nullable=False, default=0)
    fuel_surcharge = Column(Numeric(12, 2), nullable=False, default=0)
    detention = Column(Numeric(12, 2), nullable=False, default=0)
    tonu = Column(Numeric(12, 2), nullable=False, default=0)
    distance_miles = Column(Float, nullable=False, default=0)
    duration_hours = Column(Float, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    comments = Column(Text, nullable=True)
    matched = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())

    invoice_import = relationship("InvoiceImport", back_populates="line_items")
