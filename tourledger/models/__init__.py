"""SQLAlchemy models for the trip batch store."""

from tourledger.models.base import Base  # noqa: F401
from tourledger.models.trip_batch import BatchFileHash, BatchStatus, FileFeed, TripBatch  # noqa: F401
from tourledger.models.trip import Trip, TripLoad, TripStage  # noqa: F401
from tourledger.models.invoice import InvoiceImport, InvoiceItemType, InvoiceLineItem  # noqa: F401
