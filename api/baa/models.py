from enum import Enum
from typing import Optional
from datetime import datetime
from sqlalchemy import Index, text
from sqlmodel import SQLModel, Field as ORMField

from .utils import utcnow


class AgreementStatus(str, Enum):
    NOT_STARTED = "not_started"  # virtual, never persisted
    AWAITING_ORG_SIGNATURE = "awaiting_org_signature"
    AWAITING_VENDOR_SIGNATURE = "awaiting_vendor_signature"
    EXECUTED = "executed"
    VOIDED = "voided"
    SUPERSEDED = "superseded"


class Organization(SQLModel, table=True):
    id: str = ORMField(primary_key=True)
    name: str
    subdomain: str = ORMField(index=True)
    status: str = "active"
    created_at: datetime = ORMField(default_factory=utcnow)

class AgreementTemplate(SQLModel, table=True):
    version: int = ORMField(primary_key=True)
    name: str = "hhs-baa"
    body_text: str
    vendor_legal_name: str
    vendor_contact_email: str
    sha256: str
    published_at: datetime = ORMField(default_factory=utcnow)

class Agreement(SQLModel, table=True):
    __table_args__ = (
        # one active (non-superseded) agreement per organization
        Index(
            "uq_agreement_active_org",
            "organization_id",
            unique=True,
            sqlite_where=text("status != 'superseded'"),
            postgresql_where=text("status != 'superseded'"),
        ),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    organization_id: str = ORMField(foreign_key="organization.id", index=True)
    template_version: int
    template_sha256: str
    status: str = AgreementStatus.AWAITING_ORG_SIGNATURE.value
    lock_version: int = 0
    previous_agreement_id: Optional[int] = ORMField(default=None, foreign_key="agreement.id")
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)

    org_signer_principal_id: Optional[str] = None
    org_signer_name: Optional[str] = None
    org_signer_title: Optional[str] = None
    org_signer_email: Optional[str] = None
    org_signed_at: Optional[datetime] = None
    org_signer_ip: Optional[str] = None
    org_signer_user_agent: Optional[str] = None

    vendor_signer_principal_id: Optional[str] = None
    vendor_signer_name: Optional[str] = None
    vendor_signer_title: Optional[str] = None
    vendor_signed_at: Optional[datetime] = None

    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    voided_by: Optional[str] = None

    document_key: Optional[str] = None
    document_sha256: Optional[str] = None
    document_rendered_at: Optional[datetime] = None

class AuditEvent(SQLModel, table=True):
    id: Optional[int] = ORMField(default=None, primary_key=True)
    agreement_id: int = ORMField(foreign_key="agreement.id", index=True)
    organization_id: str = ORMField(index=True)
    actor: str  # system|user:<principal_id>
    type: str   # initialized|org_signed|countersigned|voided|superseded|document_rendered
    meta_json: str = "{}"
    ip: Optional[str] = None
    ua: Optional[str] = None
    at: datetime = ORMField(default_factory=utcnow)
    prev_hash: Optional[str] = None
    hash: Optional[str] = None
