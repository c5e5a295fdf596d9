"""Trip batch models: one reconciliation cycle and the file hashes applied to it."""
import enum
from datetime import datetime

from sqlalchemy import Column, DateTime, Enum, Float, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from tourledger.models.base import Base


class BatchStatus(str, enum.Enum):
    """Batch lifecycle. Only moves forward: EMPTY -> ACTIVE -> INVOICED."""
    EMPTY = "EMPTY"
    ACTIVE = "ACTIVE"
    INVOICED = "INVOICED"


class FileFeed(str, enum.Enum):
    """Which input feed a hashed file belongs to."""
    TRIPS = "trips"
    INVOICE = "invoice"


class TripBatch(Base):
    __tablename__ = "trip_batch"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    status = Column(
        Enum(BatchStatus, name="batch_status", native_enum=False, values_callable=lambda enum_class: [e.value for e in enum_class]),
        nullable=False,
        default=BatchStatus.EMPTY,
        index=True,
    )

    trip_file_hash = Column(String, nullable=True, index=True)
    invoice_file_hash = Column(String, nullable=True)
    trips_imported_at = Column(DateTime, nullable=True)
    invoice_imported_at = Column(DateTime, nullable=True)
    projection_locked_at = Column(DateTime, nullable=True)

    # Cached counts
    trip_count = Column(Integer, nullable=False, default=0)
    load_count = Column(Integer, nullable=False, default=0)
    canceled_count = Column(Integer, nullable=False, default=0)
    completed_count = Column(Integer, nullable=False, default=0)

    # Projection snapshot (active trips only)
    projected_tours = Column(Integer, nullable=False, default=0)
    projected_loads = Column(Integer, nullable=False, default=0)
    projected_tour_pay = Column(Numeric(12, 2), nullable=False, default=0)
    projected_accessorials = Column(Numeric(12, 2), nullable=False, default=0)
    projected_total = Column(Numeric(12, 2), nullable=False, default=0)

    # Actuals from the carrier invoice (null until invoiced)
    actual_tours = Column(Integer, nullable=True)
    actual_loads = Column(Integer, nullable=True)
    actual_tour_pay = Column(Numeric(12, 2), nullable=True)
    actual_accessorials = Column(Numeric(12, 2), nullable=True)
    actual_adjustments = Column(Numeric(12, 2), nullable=True)
    actual_total = Column(Numeric(12, 2), nullable=True)
    variance = Column(Numeric(12, 2), nullable=True)
    variance_percent = Column(Float, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    trips = relationship("Trip", back_populates="batch", cascade="all, delete-orphan", passive_deletes=True)
    invoice_imports = relationship(
        "InvoiceImport", back_populates="batch", cascade="all, delete-orphan", passive_deletes=True
    )
    file_hashes = relationship(
        "BatchFileHash", back_populates="batch", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def is_locked(self) -> bool:
        return self.status == BatchStatus.INVOICED


class BatchFileHash(Base):
    """A content hash applied to a batch. The unique constraint is the insert-if-absent primitive."""

    __tablename__ = "batch_file_hash"
    __table_args__ = (UniqueConstraint("batch_id", "feed", "file_hash", name="uq_batch_file_hash"),)

    id = Column(String, primary_key=True)
    batch_id = Column(String, ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True)
    feed = Column(Enum(FileFeed, name="file_feed", native_enum=False, values_callable=lambda enum_class: [e.value for e in enum_class]), nullable=False)
    file_hash = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())

    batch = relationship("TripBatch", back_populates="file_hashes")
