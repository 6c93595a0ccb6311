"""Request principal and role gates.

The upstream token verifier forwards the authenticated identity in the
``X-User-Id`` and ``X-User-Role`` headers.
"""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Query, status

from models.base import as_utc
from models.enums import UserRole
from services.history_service import LoanFilters


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated caller."""

    user_id: str
    role: UserRole


def get_principal(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Principal:
    """Resolve the caller, or 401 when identity headers are missing or malformed."""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    try:
        role = UserRole.parse(x_user_role)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown role in credentials")
    return Principal(user_id=x_user_id.strip(), role=role)


def require_roles(*roles: UserRole) -> Callable[..., Principal]:
    """Build a dependency that admits only the given roles."""
    allowed = frozenset(roles)

    def _dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            logger.info("Role denied user_id=%s role=%s", principal.user_id, principal.role.value)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This action requires role {0}".format(" or ".join(sorted(r.value for r in allowed))),
            )
        return principal

    return _dependency


def loan_filters(
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    min_amount: Optional[int] = Query(default=None, ge=0),
    max_amount: Optional[int] = Query(default=None, ge=0),
    search: Optional[str] = Query(default=None),
) -> LoanFilters:
    """History filters shared by every loan listing endpoint."""
    return LoanFilters(
        start_date=as_utc(start_date) if start_date else None,
        end_date=as_utc(end_date) if end_date else None,
        status=status_filter,
        min_amount=min_amount,
        max_amount=max_amount,
        search=search,
    )
