from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlmodel import Session

from .. import lifecycle, projections, templates
from ..auth import resolve_principal
from ..authorization import Action, Principal, require
from ..db import get_session
from ..documents import dispatch_render
from ..schemas import CountersignRequest, TemplatePublish, VoidRequest
from ..utils import client_ip, user_agent

router = APIRouter()

@router.get("")
def list_agreements(
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, None, Action.LIST_ALL)
    return projections.admin_list(session, search=search, status=status, page=page, limit=limit)

@router.get("/stats")
def get_stats(
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, None, Action.LIST_ALL)
    return projections.admin_stats(session)

@router.get("/templates")
def list_templates(
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, None, Action.LIST_ALL)
    return {"data": [projections.template_view(t) for t in templates.list_versions(session)]}

@router.post("/templates", status_code=201)
def publish_template(
    payload: TemplatePublish,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, None, Action.PUBLISH_TEMPLATE)
    options = payload.model_dump(exclude_unset=True, exclude_none=True)
    template = templates.publish(session, **options)
    return projections.template_view(template)

@router.get("/organizations/{organization_id}")
def get_organization_detail(
    organization_id: str,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    require(principal, organization_id, Action.LIST_ALL)
    return projections.org_detail(session, organization_id)

@router.post("/organizations/{organization_id}/countersign")
def countersign(
    organization_id: str,
    payload: CountersignRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreement = lifecycle.countersign(
        session,
        principal,
        organization_id,
        signer_name=payload.signer_name,
        signer_title=payload.signer_title,
        ip=client_ip(request),
        ua=user_agent(request),
    )
    dispatch_render(background_tasks, agreement.id)
    return {
        "data": projections.agreement_view(agreement),
        "message": "BAA countersigned. Agreement is now fully executed.",
    }

@router.post("/organizations/{organization_id}/void")
def void(
    organization_id: str,
    payload: VoidRequest,
    request: Request,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreement = lifecycle.void(
        session, principal, organization_id, payload.reason,
        ip=client_ip(request), ua=user_agent(request),
    )
    return {"data": projections.agreement_view(agreement), "message": "BAA voided."}

@router.post("/organizations/{organization_id}/supersede", status_code=201)
def supersede(
    organization_id: str,
    request: Request,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    previous, replacement = lifecycle.supersede(
        session, principal, organization_id, ip=client_ip(request), ua=user_agent(request)
    )
    return {
        "data": projections.agreement_view(replacement),
        "superseded": projections.agreement_view(previous),
    }
