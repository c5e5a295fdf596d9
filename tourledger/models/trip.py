"""Scheduled trips and their loads."""
import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship

from tourledger.models.base import Base

STOP_SLOTS = 7


class TripStage(str, enum.Enum):
    UPCOMING = "UPCOMING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class Trip(Base):
    __tablename__ = "trip"
    __table_args__ = (UniqueConstraint("batch_id", "trip_id", name="uq_trip_batch_trip_id"),)

    id = Column(String, primary_key=True)
    batch_id = Column(String, ForeignKey("trip_batch.id", ondelete="CASCADE"), nullable=False, index=True)

    # Business key shared with the carrier invoice feed
    trip_id = Column(String, nullable=False, index=True)
    stage = Column(
        Enum(TripStage, name="trip_stage", native_enum=False, values_callable=lambda enum_class: [e.value for e in enum_class]),
        nullable=False,
        default=TripStage.UPCOMING,
    )
    equipment_type = Column(String, nullable=True)
    operator_type = Column(String, nullable=True)
    scheduled_date = Column(Date, nullable=False, index=True)

    projected_loads = Column(Integer, nullable=False, default=0)
    projected_revenue = Column(Numeric(12, 2), nullable=False, default=0)
    actual_loads = Column(Integer, nullable=True)
    actual_revenue = Column(Numeric(12, 2), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    batch = relationship("TripBatch", back_populates="trips")
    loads = relationship(
        "TripLoad",
        back_populates="trip",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TripLoad.sequence",
    )

    @property
    def is_canceled(self) -> bool:
        return self.stage == TripStage.CANCELED


class TripLoad(Base):
    __tablename__ = "trip_load"

    id = Column(String, primary_key=True)
    trip_db_id = Column(String, ForeignKey("trip.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False, default=0)
    load_id = Column(String, nullable=False)
    facility_sequence = Column(String, nullable=True)
    load_execution_status = Column(String, nullable=True)
    is_bobtail = Column(Boolean, nullable=False, default=False)
    estimated_distance = Column(Float, nullable=False, default=0)

    stop1 = Column(String, nullable=True)
    stop1_planned_arrival = Column(DateTime, nullable=True)
    stop2 = Column(String, nullable=True)
    stop2_planned_arrival = Column(DateTime, nullable=True)
    stop3 = Column(String, nullable=True)
    stop3_planned_arrival = Column(DateTime, nullable=True)
    stop4 = Column(String, nullable=True)
    stop4_planned_arrival = Column(DateTime, nullable=True)
    stop5 = Column(String, nullable=True)
    stop5_planned_arrival = Column(DateTime, nullable=True)
    stop6 = Column(String, nullable=True)
    stop6_planned_arrival = Column(DateTime, nullable=True)
    stop7 = Column(String, nullable=True)
    stop7_planned_arrival = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, server_default=func.now())

    trip = relationship("Trip", back_populates="loads")

    @property
    def stop_names(self) -> list[str]:
        """Non-empty stop names in slot order."""
        names = []
        for slot in range(1, STOP_SLOTS + 1):
            name = getattr(self, f"stop{slot}")
            if name and name.strip():
                names.append(name)
        return names
