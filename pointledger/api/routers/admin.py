"""Operational endpoints for schedulers and operators."""

import logging

from fastapi import APIRouter, Depends

from pointledger.core.credits.service import LedgerService
from ..dependencies import get_ledger, verify_api_key
from ..schemas.credits import SweepResponse
from ..schemas.errors import BASE_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", dependencies=[Depends(verify_api_key)])


@router.post(
    "/period-reset",
    response_model=SweepResponse,
    operation_id="runPeriodReset",
    responses=BASE_ERROR_RESPONSES,
    summary="Roll expired periods forward",
)
async def run_period_reset(ledger: LedgerService = Depends(get_ledger)):
    """Run one period reset sweep now. Safe to repeat."""
    result = await ledger.sweep()
    return SweepResponse(success=True, result=result)
