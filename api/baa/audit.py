import json
from typing import List, Optional

from sqlmodel import Session, select

from .models import Agreement, AuditEvent
from .utils import canonical_json, sha256_bytes

GENESIS_HASH = "0" * 64


def append_event(
    session: Session,
    agreement: Agreement,
    actor: str,
    type_: str,
    meta: dict,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> AuditEvent:
    """Add a hash-chained event to the caller's transaction (no commit)."""
    last = session.exec(
        select(AuditEvent).where(AuditEvent.agreement_id == agreement.id).order_by(AuditEvent.id.desc())
    ).first()
    prev_hash = last.hash if last else GENESIS_HASH
    payload = {"actor": actor, "type": type_, "meta": meta}
    event = AuditEvent(
        agreement_id=agreement.id,
        organization_id=agreement.organization_id,
        actor=actor,
        type=type_,
        meta_json=canonical_json(payload),
        prev_hash=prev_hash,
        ip=ip,
        ua=ua,
    )
    event.hash = sha256_bytes((prev_hash + event.meta_json).encode())
    session.add(event)
    session.flush()
    return event

def list_events(session: Session, agreement_id: int) -> List[AuditEvent]:
    return session.exec(
        select(AuditEvent).where(AuditEvent.agreement_id == agreement_id).order_by(AuditEvent.id)
    ).all()

def verify_chain(events: List[AuditEvent]) -> bool:
    prev_hash = GENESIS_HASH
    for event in events:
        if event.prev_hash != prev_hash:
            return False
        if event.hash != sha256_bytes((prev_hash + event.meta_json).encode()):
            return False
        prev_hash = event.hash
    return True

def serialize_event(event: AuditEvent) -> dict:
    try:
        meta = json.loads(event.meta_json or "{}").get("meta", {})
    except json.JSONDecodeError:
        meta = {}
    return {
        "id": event.id,
        "agreement_id": event.agreement_id,
        "actor": event.actor,
        "type": event.type,
        "meta": meta,
        "ip": event.ip,
        "at": event.at,
        "hash": event.hash,
    }
