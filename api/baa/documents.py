"""Executed-agreement documents: rendering, storage and download.

Rendering happens outside the lifecycle transaction. A storage failure is
reported as DependencyFailure and never changes agreement status.
"""

import logging
from io import BytesIO
from typing import Tuple

from fastapi import BackgroundTasks
from kombu.exceptions import OperationalError as BrokerError
from minio.error import S3Error
from pypdf import PdfReader, PdfWriter
from reportlab.lib.pagesizes import letter
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas
from sqlmodel import Session
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from . import audit, db, templates
from .authorization import Action, Principal, require
from .config import DOCUMENT_RENDER_MODE
from .errors import DependencyFailure, InvalidTransition, NotFound
from .models import Agreement, Organization
from .storage import get_bytes, put_bytes
from .store import AgreementStore
from .utils import sha256_bytes

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (S3Error, Urllib3HTTPError, OSError)

PAGE_WIDTH, PAGE_HEIGHT = letter
MARGIN = 72
LINE_HEIGHT = 13


def _draw_lines(c: canvas.Canvas, lines, font="Helvetica", size=10):
    y = PAGE_HEIGHT - MARGIN
    c.setFont(font, size)
    for line in lines:
        wrapped = simpleSplit(line, font, size, PAGE_WIDTH - 2 * MARGIN) or [""]
        for part in wrapped:
            if y < MARGIN:
                c.showPage()
                c.setFont(font, size)
                y = PAGE_HEIGHT - MARGIN
            c.drawString(MARGIN, y, part)
            y -= LINE_HEIGHT

def _render_body(text: str) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    _draw_lines(c, text.splitlines())
    c.showPage()
    c.save()
    return buf.getvalue()

def _render_certificate(info: dict) -> bytes:
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(MARGIN, PAGE_HEIGHT - MARGIN + 14, "Certificate of Execution")
    _draw_lines(c, [f"{k}: {v}" for k, v in info.items()])
    c.showPage()
    c.save()
    return buf.getvalue()

def build_pdf(text: str, certificate: dict, title: str) -> bytes:
    writer = PdfWriter()
    for part in (_render_body(text), _render_certificate(certificate)):
        for page in PdfReader(BytesIO(part)).pages:
            writer.add_page(page)
    writer.add_metadata({"/Title": title, "/Subject": "Business Associate Agreement"})
    out = BytesIO()
    writer.write(out)
    return out.getvalue()

def _certificate_info(agreement: Agreement, org: Organization, chain_head: str) -> dict:
    return {
        "agreement_id": agreement.id,
        "organization": f"{org.name} ({org.subdomain})",
        "template_version": agreement.template_version,
        "template_sha256": agreement.template_sha256,
        "org_signer": f"{agreement.org_signer_name}, {agreement.org_signer_title} <{agreement.org_signer_email}>",
        "org_signed_at": agreement.org_signed_at,
        "org_signer_ip": agreement.org_signer_ip,
        "vendor_signer": f"{agreement.vendor_signer_name}, {agreement.vendor_signer_title}",
        "vendor_signed_at": agreement.vendor_signed_at,
        "audit_chain_head": chain_head,
    }

def document_key_for(agreement: Agreement) -> str:
    return f"baa/{agreement.organization_id}/{agreement.id}/executed.pdf"

def render_and_store(session: Session, agreement_id: int) -> str:
    store = AgreementStore(session)
    agreement = store.get(agreement_id)
    if agreement.vendor_signed_at is None:
        raise InvalidTransition("agreement has not been executed", agreement.status)
    if agreement.document_key:
        return agreement.document_key

    org = store.get_organization(agreement.organization_id)
    template = templates.get(session, agreement.template_version)
    events = audit.list_events(session, agreement.id)
    chain_head = events[-1].hash if events else audit.GENESIS_HASH
    pdf = build_pdf(
        templates.render_text(template, org, agreement),
        _certificate_info(agreement, org, chain_head),
        title=f"BAA - {org.name}",
    )
    key = document_key_for(agreement)
    try:
        put_bytes(key, pdf, content_type="application/pdf")
    except STORAGE_ERRORS as exc:
        raise DependencyFailure("document storage is unavailable") from exc

    sha = sha256_bytes(pdf)
    if store.set_document(agreement.id, key, sha):
        audit.append_event(session, agreement, "system", "document_rendered", {"document_sha256": sha})
    session.commit()
    session.refresh(agreement)
    logger.info("rendered document for agreement %s (%s)", agreement.id, sha)
    return agreement.document_key

def fetch_document(document_key: str) -> bytes:
    try:
        return get_bytes(document_key)
    except STORAGE_ERRORS as exc:
        raise DependencyFailure("document storage is unavailable") from exc

def render_in_background(agreement_id: int) -> None:
    with Session(db.engine) as session:
        try:
            render_and_store(session, agreement_id)
        except DependencyFailure as exc:
            logger.warning("document rendering failed for agreement %s: %s", agreement_id, exc)

def dispatch_render(background_tasks: BackgroundTasks, agreement_id: int) -> None:
    """Fire-and-forget rendering once an agreement is executed."""
    if DOCUMENT_RENDER_MODE == "celery":
        from .tasks import render_agreement_document
        try:
            render_agreement_document.delay(agreement_id)
        except BrokerError as exc:
            logger.warning("could not queue rendering for agreement %s: %s", agreement_id, exc)
        return
    background_tasks.add_task(render_in_background, agreement_id)

def download(session: Session, principal: Principal, agreement_id: int) -> Tuple[bytes, str]:
    agreement = session.get(Agreement, agreement_id)
    if agreement is None and principal.is_vendor_admin:
        raise NotFound("agreement not found")
    # members of other organizations get the same answer whether or not it exists
    require(principal, agreement.organization_id if agreement else None, Action.VIEW)

    # voided or superseded agreements that were executed stay downloadable for audit
    if agreement.vendor_signed_at is None:
        raise InvalidTransition("agreement has not been executed", agreement.status)
    key = agreement.document_key or render_and_store(session, agreement.id)
    data = fetch_document(key)
    org = session.get(Organization, agreement.organization_id)
    subdomain = org.subdomain if org else agreement.organization_id
    filename = f"BAA-{subdomain}-v{agreement.template_version}-{agreement.id}.pdf"
    return data, filename
