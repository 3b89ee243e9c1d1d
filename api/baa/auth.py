from typing import Optional
from fastapi import Depends, Header, HTTPException, Query, status
from itsdangerous import BadSignature
from pydantic import ValidationError as PydanticValidationError
from sqlmodel import Session

from .authorization import Principal
from .db import get_session
from .store import AgreementStore
from .utils import read_token


def resolve_principal(
    x_access_token: Optional[str] = Header(default=None, alias="X-Access-Token"),
    token: Optional[str] = Query(default=None),
) -> Principal:
    candidate = x_access_token or token
    if not candidate:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing access token")
    try:
        return Principal(**read_token(candidate))
    except (BadSignature, PydanticValidationError, TypeError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")


def require_executed_agreement(
    principal: Principal = Depends(resolve_principal),
    session: Session = Depends(get_session),
) -> Principal:
    """Gate for PHI routes: the caller's organization must have an executed BAA."""
    # vendor admins need cross-tenant access for support
    if principal.is_vendor_admin:
        return principal
    if not principal.organization_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"reason": "no_organization", "message": "No organization context available"},
        )
    if not AgreementStore(session).has_executed(principal.organization_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "reason": "baa_not_executed",
                "message": "A Business Associate Agreement must be executed before accessing this feature.",
                "redirect_to": "/baa",
            },
        )
    return principal
