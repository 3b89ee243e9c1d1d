from fastapi import APIRouter, Depends, Response
from sqlmodel import Session

from .. import audit
from ..auth import resolve_principal
from ..authorization import Action, Principal, require
from ..db import get_session
from ..documents import download
from ..errors import NotFound
from ..models import Agreement

router = APIRouter()

@router.get("/{agreement_id}/download")
def download_agreement(
    agreement_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    data, filename = download(session, principal, agreement_id)
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.get("/{agreement_id}/audit")
def get_audit_trail(
    agreement_id: int,
    session: Session = Depends(get_session),
    principal: Principal = Depends(resolve_principal),
):
    agreement = session.get(Agreement, agreement_id)
    if agreement is None and principal.is_vendor_admin:
        raise NotFound("agreement not found")
    require(principal, agreement.organization_id if agreement else None, Action.VIEW)
    events = audit.list_events(session, agreement.id)
    return {
        "agreement_id": agreement.id,
        "chain_valid": audit.verify_chain(events),
        "events": [audit.serialize_event(e) for e in events],
    }
