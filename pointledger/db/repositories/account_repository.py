"""
Account repository.

Accounts are owned by the identity and subscription systems; these helpers
let those flows register accounts and keep plan ids current.
"""

import logging
from typing import Any, Dict, Optional

from pointledger.core.credits.exceptions import AccountNotFound
from ..models import AccountKind, AccountModel
from ..utils import ledger_transaction, model_to_dict, with_conflict_retry

logger = logging.getLogger(__name__)

ACCOUNT_KINDS = (AccountKind.INDIVIDUAL, AccountKind.ORGANIZATION, AccountKind.MEMBER, AccountKind.ADMIN)
ORGANIZATION_SCOPED_KINDS = (AccountKind.MEMBER, AccountKind.ADMIN)


@with_conflict_retry
async def upsert_account(
    account_id: str,
    kind: str,
    plan_id: Optional[str] = None,
    organization_id: Optional[str] = None,
    display_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create an account or update its plan, organization and display name.

    Args:
        account_id: Identity of the account
        kind: individual, organization, member or admin
        plan_id: Plan identifier from the catalog (individuals and organizations)
        organization_id: Owning organization (members and admins)
        display_name: Optional label for administrator views

    Returns:
        Account as dict

    Raises:
        ValueError: Unknown kind, or a member or admin without an organization
        AccountNotFound: The referenced organization does not exist
    """
    if kind not in ACCOUNT_KINDS:
        raise ValueError(f"Unknown account kind: {kind}")
    if kind in ORGANIZATION_SCOPED_KINDS and not organization_id:
        raise ValueError("Organization members and admins require an organization_id")

    async with ledger_transaction() as session:
        if organization_id:
            organization = await session.get(AccountModel, organization_id)
            if organization is None or organization.kind != AccountKind.ORGANIZATION:
                raise AccountNotFound(organization_id, organization_id=organization_id)

        account = await session.get(AccountModel, account_id, with_for_update=True)
        if account is None:
            account = AccountModel(id=account_id, kind=kind)
            session.add(account)
            logger.info(f"Registered {kind} account {account_id}")
        elif account.plan_id != plan_id:
            logger.info(f"Account {account_id} plan changed: {account.plan_id} -> {plan_id}")

        account.kind = kind
        account.plan_id = plan_id
        account.organization_id = organization_id
        if display_name is not None:
            account.display_name = display_name

        await session.flush()
        return model_to_dict(account)


async def get_account(account_id: str) -> Optional[Dict[str, Any]]:
    """Fetch an account as dict, or None."""
    async with ledger_transaction() as session:
        account = await session.get(AccountModel, account_id)
        return model_to_dict(account) if account else None


__all__ = [
    "upsert_account",
    "get_account",
]
