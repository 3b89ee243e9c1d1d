"""Agreement lifecycle state machine.

    (none) --ensure_started--> awaiting_org_signature
    awaiting_org_signature --sign--> awaiting_vendor_signature
    awaiting_vendor_signature --countersign--> executed
    awaiting_* | executed --void--> voided
    executed | voided --supersede--> superseded (+ new awaiting_org_signature)

Every transition authorizes, validates its input, checks the guard against the
loaded agreement and then writes through `AgreementStore.update`, so the guard
is re-checked atomically in the database. The audit event is added in the same
transaction as the status change.
"""

import logging
from typing import List, Optional, Tuple

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import audit, templates
from .authorization import Action, Principal, require
from .errors import InvalidTransition, ValidationError
from .models import Agreement, AgreementStatus
from .store import AgreementStore
from .utils import utcnow

logger = logging.getLogger(__name__)

NOT_STARTED = AgreementStatus.NOT_STARTED.value
AWAITING_ORG = AgreementStatus.AWAITING_ORG_SIGNATURE.value
AWAITING_VENDOR = AgreementStatus.AWAITING_VENDOR_SIGNATURE.value
EXECUTED = AgreementStatus.EXECUTED.value
VOIDED = AgreementStatus.VOIDED.value
SUPERSEDED = AgreementStatus.SUPERSEDED.value

VOIDABLE = {AWAITING_ORG, AWAITING_VENDOR, EXECUTED}
SUPERSEDABLE = {EXECUTED, VOIDED}

_email_adapter = TypeAdapter(EmailStr)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()

def _require_fields(**values) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(f"required: {', '.join(missing)}", fields=missing)

def _validate_email(value: str) -> str:
    try:
        return str(_email_adapter.validate_python(value))
    except PydanticValidationError:
        raise ValidationError("a valid signer email is required", fields=["signer_email"])

def _log_transition(agreement: Agreement, before: str) -> None:
    logger.info(
        "agreement %s for org %s: %s -> %s",
        agreement.id, agreement.organization_id, before, agreement.status,
    )

def _materialize(
    session: Session,
    store: AgreementStore,
    organization_id: str,
    actor: str,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Tuple[Agreement, bool]:
    existing = store.find_active(organization_id)
    if existing:
        return existing, False
    template = templates.latest(session)
    try:
        agreement = store.create(organization_id, template)
        audit.append_event(
            session, agreement, actor, "initialized",
            {"template_version": template.version, "template_sha256": template.sha256},
            ip=ip, ua=ua,
        )
        session.commit()
    except IntegrityError:
        # another request materialized it first
        session.rollback()
        return store.get_active(organization_id), False
    logger.info(
        "agreement %s for org %s: %s -> %s",
        agreement.id, organization_id, NOT_STARTED, AWAITING_ORG,
    )
    session.refresh(agreement)
    return agreement, True


def ensure_started(
    session: Session,
    principal: Principal,
    organization_id: str,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Tuple[Agreement, bool]:
    """Return the active agreement, creating it from the latest template if none exists."""
    require(principal, organization_id, Action.SIGN)
    store = AgreementStore(session)
    store.get_organization(organization_id)
    return _materialize(session, store, organization_id, principal.actor, ip, ua)


def sign(
    session: Session,
    principal: Principal,
    organization_id: str,
    signer_name: Optional[str],
    signer_title: Optional[str],
    signer_email: Optional[str],
    consent: bool,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Agreement:
    require(principal, organization_id, Action.SIGN)
    store = AgreementStore(session)
    store.get_organization(organization_id)

    if consent is not True:
        raise ValidationError("you must consent to electronic signature", fields=["consent"])
    name, title, email = _clean(signer_name), _clean(signer_title), _clean(signer_email)
    _require_fields(signer_name=name, signer_title=title, signer_email=email)
    email = _validate_email(email)

    agreement, _ = _materialize(session, store, organization_id, principal.actor, ip, ua)
    if agreement.status != AWAITING_ORG:
        raise InvalidTransition(f"cannot sign agreement in status {agreement.status}", agreement.status)

    signed_at = utcnow()
    store.update(
        agreement,
        AWAITING_ORG,
        status=AWAITING_VENDOR,
        org_signer_principal_id=principal.principal_id,
        org_signer_name=name,
        org_signer_title=title,
        org_signer_email=email,
        org_signed_at=signed_at,
        org_signer_ip=ip,
        org_signer_user_agent=ua,
    )
    audit.append_event(
        session, agreement, principal.actor, "org_signed",
        {"signer_email": email, "signed_at": signed_at.isoformat()},
        ip=ip, ua=ua,
    )
    session.commit()
    _log_transition(agreement, AWAITING_ORG)
    return agreement


def countersign(
    session: Session,
    principal: Principal,
    organization_id: str,
    signer_name: Optional[str],
    signer_title: Optional[str],
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Agreement:
    require(principal, organization_id, Action.COUNTERSIGN)
    store = AgreementStore(session)
    store.get_organization(organization_id)

    name, title = _clean(signer_name), _clean(signer_title)
    _require_fields(signer_name=name, signer_title=title)

    agreement = store.find_active(organization_id)
    if agreement is None:
        raise InvalidTransition("organization has not yet signed", NOT_STARTED)
    if agreement.status == AWAITING_ORG:
        raise InvalidTransition("organization has not yet signed", agreement.status)
    if agreement.status != AWAITING_VENDOR:
        raise InvalidTransition(f"cannot countersign agreement in status {agreement.status}", agreement.status)

    signed_at = utcnow()
    store.update(
        agreement,
        AWAITING_VENDOR,
        status=EXECUTED,
        vendor_signer_principal_id=principal.principal_id,
        vendor_signer_name=name,
        vendor_signer_title=title,
        vendor_signed_at=signed_at,
    )
    audit.append_event(
        session, agreement, principal.actor, "countersigned",
        {"signer_name": name, "signed_at": signed_at.isoformat()},
        ip=ip, ua=ua,
    )
    session.commit()
    _log_transition(agreement, AWAITING_VENDOR)
    return agreement


def void(
    session: Session,
    principal: Principal,
    organization_id: str,
    reason: Optional[str],
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Agreement:
    require(principal, organization_id, Action.VOID)
    store = AgreementStore(session)
    store.get_organization(organization_id)

    reason = _clean(reason)
    _require_fields(reason=reason)

    agreement = store.find_active(organization_id)
    if agreement is None:
        raise InvalidTransition("organization has no agreement to void", NOT_STARTED)
    if agreement.status not in VOIDABLE:
        raise InvalidTransition(f"cannot void agreement in status {agreement.status}", agreement.status)

    previous_status = agreement.status
    store.update(
        agreement,
        previous_status,
        status=VOIDED,
        void_reason=reason,
        voided_at=utcnow(),
        voided_by=principal.principal_id,
    )
    audit.append_event(
        session, agreement, principal.actor, "voided",
        {"reason": reason, "previous_status": previous_status},
        ip=ip, ua=ua,
    )
    session.commit()
    _log_transition(agreement, previous_status)
    return agreement


def supersede(
    session: Session,
    principal: Principal,
    organization_id: str,
    ip: Optional[str] = None,
    ua: Optional[str] = None,
) -> Tuple[Agreement, Agreement]:
    """Replace a finalized agreement with a fresh one on the newest template.

    Returns (superseded, replacement).
    """
    require(principal, organization_id, Action.SUPERSEDE)
    store = AgreementStore(session)
    store.get_organization(organization_id)

    agreement = store.find_active(organization_id)
    if agreement is None:
        raise InvalidTransition("organization has no agreement to supersede", NOT_STARTED)
    if agreement.status not in SUPERSEDABLE:
        raise InvalidTransition(
            f"only executed or voided agreements can be superseded (status {agreement.status})",
            agreement.status,
        )
    template = templates.latest(session)
    if template.version <= agreement.template_version:
        raise InvalidTransition("no newer template version has been published", agreement.status)

    previous_status = agreement.status
    store.update(agreement, previous_status, status=SUPERSEDED)
    audit.append_event(
        session, agreement, principal.actor, "superseded",
        {"previous_status": previous_status, "replaced_by_template_version": template.version},
        ip=ip, ua=ua,
    )
    replacement = store.create(organization_id, template, previous_agreement_id=agreement.id)
    audit.append_event(
        session, replacement, principal.actor, "initialized",
        {
            "template_version": template.version,
            "template_sha256": template.sha256,
            "previous_agreement_id": agreement.id,
        },
        ip=ip, ua=ua,
    )
    session.commit()
    session.refresh(replacement)
    _log_transition(agreement, previous_status)
    _log_transition(replacement, NOT_STARTED)
    return agreement, replacement


def history(session: Session, principal: Principal, organization_id: str) -> List[Agreement]:
    require(principal, organization_id, Action.VIEW)
    store = AgreementStore(session)
    store.get_organization(organization_id)
    return store.get_history(organization_id)
