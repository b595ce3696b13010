"""Shared dependencies for API routes.

Identity comes from headers set by the authenticating gateway in front of
this service. The ledger trusts them and does not authenticate.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Path

from pointledger.core.credits.config import get_ledger_config
from pointledger.core.credits.schemas import AccountRole
from pointledger.core.credits.service import LedgerService, get_ledger_service

logger = logging.getLogger(__name__)


@dataclass
class IdentityContext:
    """The authenticated caller."""
    account_id: str
    role: AccountRole
    organization_id: Optional[str] = None


def get_ledger() -> LedgerService:
    """Ledger facade dependency (overridable in tests)."""
    return get_ledger_service()


async def get_identity(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
    x_organization_id: Optional[str] = Header(None, alias="X-Organization-ID"),
) -> IdentityContext:
    """
    Build the caller identity from request headers.

    Raises:
        HTTPException 401: If X-User-ID is missing
        HTTPException 400: If the role is unknown, or an organization role
            comes without X-Organization-ID
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="X-User-ID header required")

    try:
        role = AccountRole(x_user_role or AccountRole.INDIVIDUAL.value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {x_user_role}") from None

    if role != AccountRole.INDIVIDUAL and not x_organization_id:
        raise HTTPException(
            status_code=400,
            detail="X-Organization-ID header required for organization roles",
        )

    return IdentityContext(
        account_id=x_user_id,
        role=role,
        organization_id=x_organization_id if role != AccountRole.INDIVIDUAL else None,
    )


async def require_org_admin(
    org_id: str = Path(..., description="Organization ID"),
    identity: IdentityContext = Depends(get_identity),
) -> IdentityContext:
    """Caller must administer the organization in the path."""
    if identity.role != AccountRole.ORGANIZATION_ADMIN or identity.organization_id != org_id:
        raise HTTPException(status_code=403, detail="Organization administrator required")
    return identity


async def require_org_access(
    org_id: str = Path(..., description="Organization ID"),
    identity: IdentityContext = Depends(get_identity),
) -> IdentityContext:
    """Caller must belong to the organization in the path."""
    if identity.organization_id != org_id:
        raise HTTPException(status_code=403, detail="Not a member of this organization")
    return identity


async def verify_api_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
) -> None:
    """
    Guard for service-to-service routes (purchase webhooks, admin jobs).

    Enforced only when LEDGER_API_KEY is set.
    """
    expected = get_ledger_config().api_key
    if expected and x_api_key != expected:
        logger.warning("Rejected request with invalid API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
