"""Read-only views over agreements for the organization screen and the vendor dashboard."""

from math import ceil
from typing import Optional

from sqlmodel import Session

from . import templates
from .config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from .errors import ValidationError
from .models import Agreement, AgreementStatus, AgreementTemplate, Organization
from .store import AgreementStore

NOT_STARTED = AgreementStatus.NOT_STARTED.value

STATUS_INFO = {
    AgreementStatus.NOT_STARTED.value: {
        "label": "Not Started",
        "description": "BAA has not been initiated for this organization",
        "color": "gray",
    },
    AgreementStatus.AWAITING_ORG_SIGNATURE.value: {
        "label": "Awaiting Organization Signature",
        "description": "BAA is ready for the organization administrator to review and sign",
        "color": "yellow",
    },
    AgreementStatus.AWAITING_VENDOR_SIGNATURE.value: {
        "label": "Awaiting Vendor Signature",
        "description": "Organization has signed; awaiting vendor countersignature",
        "color": "blue",
    },
    AgreementStatus.EXECUTED.value: {
        "label": "Executed",
        "description": "BAA is fully executed and in effect",
        "color": "green",
    },
    AgreementStatus.VOIDED.value: {
        "label": "Voided",
        "description": "BAA has been voided and is no longer in effect",
        "color": "red",
    },
    AgreementStatus.SUPERSEDED.value: {
        "label": "Superseded",
        "description": "BAA has been replaced by a newer version",
        "color": "gray",
    },
}

# statuses an organization can be listed under; superseded rows are never active
LISTABLE_STATUSES = [s for s in STATUS_INFO if s != AgreementStatus.SUPERSEDED.value]


def status_info(status: str) -> dict:
    return {"value": status, **STATUS_INFO[status]}

def organization_view(org: Organization) -> dict:
    return {"id": org.id, "name": org.name, "subdomain": org.subdomain, "status": org.status}

def template_view(template: AgreementTemplate) -> dict:
    return {
        "version": template.version,
        "name": template.name,
        "vendor_legal_name": template.vendor_legal_name,
        "vendor_contact_email": template.vendor_contact_email,
        "sha256": template.sha256,
        "published_at": template.published_at,
    }

def agreement_view(a: Agreement) -> dict:
    org_signature = None
    if a.org_signed_at is not None:
        org_signature = {
            "signer_name": a.org_signer_name,
            "signer_title": a.org_signer_title,
            "signer_email": a.org_signer_email,
            "signed_at": a.org_signed_at,
            "source_ip": a.org_signer_ip,
        }
    vendor_signature = None
    if a.vendor_signed_at is not None:
        vendor_signature = {
            "signer_name": a.vendor_signer_name,
            "signer_title": a.vendor_signer_title,
            "signed_at": a.vendor_signed_at,
        }
    void_info = None
    if a.voided_at is not None:
        void_info = {"reason": a.void_reason, "voided_at": a.voided_at, "voided_by": a.voided_by}
    return {
        "id": a.id,
        "organization_id": a.organization_id,
        "template_version": a.template_version,
        "template_sha256": a.template_sha256,
        "status": a.status,
        "status_info": status_info(a.status),
        "previous_agreement_id": a.previous_agreement_id,
        "created_at": a.created_at,
        "updated_at": a.updated_at,
        "org_signature": org_signature,
        "vendor_signature": vendor_signature,
        "void_info": void_info,
        "document": {
            "available": a.document_key is not None,
            "sha256": a.document_sha256,
            "rendered_at": a.document_rendered_at,
        },
    }

def _current(session: Session, organization_id: str):
    store = AgreementStore(session)
    org = store.get_organization(organization_id)
    agreement = store.find_active(organization_id)
    if agreement:
        template = templates.get(session, agreement.template_version)
    else:
        template = templates.latest(session)
    return org, agreement, template

def status_view(session: Session, organization_id: str) -> dict:
    org, agreement, template = _current(session, organization_id)
    status = agreement.status if agreement else NOT_STARTED
    latest = templates.latest(session)
    return {
        "organization": organization_view(org),
        "status": status,
        "status_info": status_info(status),
        "has_agreement": agreement is not None,
        "agreement": agreement_view(agreement) if agreement else None,
        "template": template_view(template),
        "latest_template_version": latest.version,
        "can_sign": status in (NOT_STARTED, AgreementStatus.AWAITING_ORG_SIGNATURE.value),
        "can_countersign": status == AgreementStatus.AWAITING_VENDOR_SIGNATURE.value,
    }

def preview(session: Session, organization_id: str) -> dict:
    org, agreement, template = _current(session, organization_id)
    return {
        "content": templates.render_text(template, org, agreement),
        "template_version": template.version,
        "content_type": "text/plain",
    }

def history_view(agreements) -> list:
    return [agreement_view(a) for a in agreements]

def admin_stats(session: Session) -> dict:
    counts = AgreementStore(session).count_by_status()
    stats = {status: counts.get(status, 0) for status in LISTABLE_STATUSES}
    stats["total"] = sum(stats.values())
    stats["status_options"] = [status_info(s) for s in STATUS_INFO]
    return stats

def admin_list(
    session: Session,
    search: Optional[str] = None,
    status: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
) -> dict:
    if status and status not in LISTABLE_STATUSES:
        raise ValidationError(f"unknown status filter {status!r}", fields=["status"])
    if page < 1:
        raise ValidationError("page must be 1 or greater", fields=["page"])
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
    rows, total = AgreementStore(session).list_active_across_orgs(search, status, page, limit)
    data = []
    for org, agreement in rows:
        current = agreement.status if agreement else NOT_STARTED
        data.append({
            "organization": organization_view(org),
            "status": current,
            "status_info": status_info(current),
            "agreement": agreement_view(agreement) if agreement else None,
        })
    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": ceil(total / limit) if total else 0,
    }

def org_detail(session: Session, organization_id: str) -> dict:
    store = AgreementStore(session)
    org = store.get_organization(organization_id)
    current = store.find_active(organization_id)
    status = current.status if current else NOT_STARTED
    return {
        "organization": organization_view(org),
        "status": status,
        "status_info": status_info(status),
        "current": agreement_view(current) if current else None,
        "history": history_view(store.get_history(organization_id)),
        "can_countersign": status == AgreementStatus.AWAITING_VENDOR_SIGNATURE.value,
    }
