from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tourledger.api.envelope import run_action
from tourledger.core.db import get_db
from tourledger.schemas.common import ActionResponse
from tourledger.schemas.invoice import InvoiceImportRequest, InvoiceImportResponse, InvoiceImportResult
from tourledger.schemas.trip_batch import DuplicateCheckRequest, DuplicateCheckResult
from tourledger.services.duplicate_guard import DuplicateGuard
from tourledger.services.invoice_import import InvoiceImportService

router = APIRouter()


async def _service(db: AsyncSession = Depends(get_db)) -> InvoiceImportService:
    return InvoiceImportService(db)


async def _guard(db: AsyncSession = Depends(get_db)) -> DuplicateGuard:
    return DuplicateGuard(db)


@router.post("/{batch_id}/invoice/import", response_model=ActionResponse[InvoiceImportResult])
async def import_invoice(
    batch_id: str,
    payload: InvoiceImportRequest,
    service: InvoiceImportService = Depends(_service),
) -> ActionResponse:
    return await run_action(lambda: service.import_invoice(batch_id, payload), "Invoices.import")


@router.post("/{batch_id}/invoice/check-duplicate", response_model=ActionResponse[DuplicateCheckResult])
async def check_duplicate_invoice_file(
    batch_id: str,
    payload: DuplicateCheckRequest,
    guard: DuplicateGuard = Depends(_guard),
) -> ActionResponse:
    return await run_action(
        lambda: guard.check_duplicate_invoice_file(batch_id, payload.file_hash), "Invoices.check_duplicate"
    )


@router.get("/{batch_id}/invoice", response_model=ActionResponse[Optional[InvoiceImportResponse]])
async def get_invoice(batch_id: str, service: InvoiceImportService = Depends(_service)) -> ActionResponse:
    async def action():
        invoice = await service.get_invoice(batch_id)
        return InvoiceImportResponse.model_validate(invoice) if invoice else None

    return await run_action(action, "Invoices.get")
