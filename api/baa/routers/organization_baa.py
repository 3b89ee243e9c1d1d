from fastapi import APIRouter, Depends, Request, Response, status
from sqlmodel import Session

from .. import lifecycle, projections
from ..auth import resolve_principal
from ..authorization import Action, Principal, require
from ..db import get_session
from ..schemas import OrgSignRequest
from ..utils import client_ip, user_agent

router = APIRouter()

@router.get("/{organization_id}/baa")
def get_status(
    organization_id: str,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, organization_id, Action.VIEW)
    return projections.status_view(session, organization_id)

@router.get("/{organization_id}/baa/preview")
def get_preview(
    organization_id: str,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, organization_id, Action.VIEW)
    return projections.preview(session, organization_id)

@router.post("/{organization_id}/baa/initialize")
def initialize(
    organization_id: str,
    request: Request,
    response: Response,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreement, created = lifecycle.ensure_started(
        session, principal, organization_id, ip=client_ip(request), ua=user_agent(request)
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"data": projections.agreement_view(agreement), "created": created}

@router.post("/{organization_id}/baa/sign")
def sign(
    organization_id: str,
    payload: OrgSignRequest,
    request: Request,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreement = lifecycle.sign(
        session,
        principal,
        organization_id,
        signer_name=payload.signer_name,
        signer_title=payload.signer_title,
        signer_email=payload.signer_email,
        consent=payload.consent,
        ip=client_ip(request),
        ua=user_agent(request),
    )
    return {
        "data": projections.agreement_view(agreement),
        "message": "BAA signed. Awaiting vendor countersignature.",
    }

@router.get("/{organization_id}/baa/history")
def get_history(
    organization_id: str,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreements = lifecycle.history(session, principal, organization_id)
    return {"data": projections.history_view(agreements)}
