"""Turns service calls into ``ActionResponse`` envelopes.

Domain errors become ``{success: false, error}``; anything unexpected is
logged with its traceback and reported as ``INTERNAL_ERROR``.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional

from tourledger.core.errors import LedgerError
from tourledger.schemas.common import ActionError, ActionResponse

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "INTERNAL_ERROR"


def success(data: Any = None, warnings: Optional[Iterable[str]] = None) -> ActionResponse:
    if warnings is None:
        warnings = getattr(data, "warnings", None) or []
    return ActionResponse(success=True, data=data, warnings=list(warnings))


def failure(code: str, message: str, batch_name: Optional[str] = None) -> ActionResponse:
    return ActionResponse(success=False, error=ActionError(code=code, message=message, batch_name=batch_name))


def from_error(exc: LedgerError) -> ActionResponse:
    return failure(exc.code, exc.message, getattr(exc, "batch_name", None))


async def run_action(action: Callable[[], Awaitable[Any]], label: str) -> ActionResponse:
    try:
        data = await action()
    except LedgerError as exc:
        logger.info(f"[{label}] {exc.code}: {exc.message}")
        return from_error(exc)
    except Exception:
        logger.exception(f"[{label}] Unexpected error")
        return failure(INTERNAL_ERROR, f"{label} failed unexpectedly")
    return success(data)
