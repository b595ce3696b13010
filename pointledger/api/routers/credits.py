"""Credit balance and consumption endpoints.

All endpoints act on the caller's own wallet, resolved from the identity
headers: an individual's balance, an organization admin's organization
balance, or an organization member's allocation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from pointledger.core.credits.service import LedgerService
from pointledger.core.credits.schemas import AccountRole
from pointledger.core.credits.plan_catalog import available_tiers
from ..dependencies import IdentityContext, get_identity, get_ledger, verify_api_key
from ..schemas.credits import (
    BalanceResponse,
    ConsumeRequest,
    ConsumeResponse,
    CostResponse,
    CreditPacksResponse,
    PurchaseRequest,
    PurchaseResponse,
    TiersResponse,
)
from ..schemas.errors import BALANCE_ERROR_RESPONSES, BASE_ERROR_RESPONSES, CONSUME_ERROR_RESPONSES

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/credits/balance",
    response_model=BalanceResponse,
    operation_id="getBalance",
    responses=BALANCE_ERROR_RESPONSES,
    summary="Get the caller's point balance",
)
async def get_balance(
    identity: IdentityContext = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger),
):
    """
    Current balance with per-tier conversations remaining.

    An expired period is rolled over before the balance is reported.
    """
    summary = await ledger.get_balance_summary(
        identity.account_id, identity.role, identity.organization_id
    )
    return BalanceResponse(success=True, **summary)


@router.post(
    "/credits/consume",
    response_model=ConsumeResponse,
    operation_id="consumePoints",
    responses=CONSUME_ERROR_RESPONSES,
    summary="Debit one AI response",
)
async def consume_points(
    body: ConsumeRequest,
    identity: IdentityContext = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger),
):
    """
    Charge the caller for one AI response.

    Returns 402 when the wallet cannot cover the cost, 403 when the plan
    does not include the tier.
    """
    await ledger.ensure_tier_available(
        identity.account_id, body.tier, identity.role, identity.organization_id
    )
    result = await ledger.consume(
        account_id=identity.account_id,
        tier=body.tier,
        work_units=body.work_units,
        activity_ref=body.activity_ref,
        role=identity.role,
        organization_id=identity.organization_id,
    )
    return ConsumeResponse(success=True, result=result)


@router.get(
    "/credits/cost",
    response_model=CostResponse,
    operation_id="getCost",
    responses=BASE_ERROR_RESPONSES,
    summary="Price a response",
)
async def get_cost(
    tier: str = Query(..., description="AI tier"),
    work_units: Optional[int] = Query(None, ge=0, description="Tokens; omit for the tier maximum"),
    ledger: LedgerService = Depends(get_ledger),
):
    """Points a response would cost. Pure calculation, nothing is debited."""
    return CostResponse(
        success=True,
        tier=tier,
        work_units=work_units,
        points=ledger.cost(tier, work_units),
    )


@router.get(
    "/credits/tiers",
    response_model=TiersResponse,
    operation_id="getTiers",
    responses=BALANCE_ERROR_RESPONSES,
    summary="List AI tiers and their maximum cost",
)
async def get_tiers(
    identity: IdentityContext = Depends(get_identity),
    ledger: LedgerService = Depends(get_ledger),
):
    """All tiers with their maximum cost, and those the caller's plan includes."""
    view = await ledger.get_balance(identity.account_id, identity.role, identity.organization_id)
    return TiersResponse(
        success=True,
        tiers=ledger.tier_costs(),
        available_tiers=available_tiers(
            view.plan_id, organization=identity.role != AccountRole.INDIVIDUAL
        ),
    )


@router.get(
    "/credits/packs",
    response_model=CreditPacksResponse,
    operation_id="getCreditPacks",
    summary="List credit packs",
)
async def get_credit_packs(ledger: LedgerService = Depends(get_ledger)):
    return CreditPacksResponse(success=True, packs=ledger.credit_packs())


@router.post(
    "/credits/purchases",
    response_model=PurchaseResponse,
    operation_id="recordPurchase",
    responses=BALANCE_ERROR_RESPONSES,
    summary="Credit purchased points",
    dependencies=[Depends(verify_api_key)],
)
async def record_purchase(
    body: PurchaseRequest,
    ledger: LedgerService = Depends(get_ledger),
):
    """
    Add purchased points to a wallet after payment succeeds.

    Called by the payment flow. Repeating a reference is a no-op and
    returns `duplicate: true`.
    """
    if body.pack_id:
        purchase = await ledger.purchase_pack(body.owner_id, body.pack_id, body.reference)
    else:
        purchase = await ledger.credit_purchased(body.owner_id, body.points, body.reference)
    return PurchaseResponse(success=True, purchase=purchase)
