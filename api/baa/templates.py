"""Versioned BAA template registry.

Templates are append-only: a new version is published, an existing one is
never edited. Agreements snapshot the version (and body hash) they were
created against.
"""

import logging
from typing import List, Optional

from sqlmodel import Session, select

from .config import VENDOR_CONTACT_EMAIL, VENDOR_LEGAL_NAME
from .errors import NotFound, ValidationError
from .models import Agreement, AgreementTemplate, Organization
from .utils import sha256_text

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_NAME = "hhs-baa"
BLANK = "________________________"

DEFAULT_TEMPLATE_BODY = """BUSINESS ASSOCIATE AGREEMENT

This Business Associate Agreement ("Agreement") is entered into as of the date of last signature below ("Effective Date"), by and between:

COVERED ENTITY: {{ORGANIZATION_NAME}}
and
BUSINESS ASSOCIATE: {{VENDOR_LEGAL_NAME}}

1. DEFINITIONS
Terms used but not otherwise defined in this Agreement shall have the same meaning as those terms in 45 CFR Parts 160 and 164.

2. OBLIGATIONS OF BUSINESS ASSOCIATE
2.1 Business Associate agrees to not use or disclose PHI other than as permitted or required by this Agreement or as Required by Law.
2.2 Business Associate agrees to use appropriate safeguards to prevent use or disclosure of PHI other than as provided for by this Agreement.
2.3 Business Associate agrees to report to Covered Entity any use or disclosure of PHI not provided for by this Agreement, including Breaches of Unsecured PHI, within 30 days of discovery.
2.4 Business Associate agrees to ensure that any subcontractors that create, receive, maintain, or transmit PHI on its behalf agree to the same restrictions and conditions.

3. PERMITTED USES AND DISCLOSURES
Business Associate may use or disclose PHI to perform scheduling services for, or on behalf of, Covered Entity.

4. TERM AND TERMINATION
Upon termination of this Agreement for any reason, Business Associate shall return or destroy all PHI received from Covered Entity.

5. CONTACT
Privacy inquiries: {{VENDOR_CONTACT_EMAIL}}

IN WITNESS WHEREOF, the Parties have executed this Agreement as of the dates set forth below.

{{ORGANIZATION_NAME}}
Name: {{ORG_SIGNER_NAME}}
Title: {{ORG_SIGNER_TITLE}}
Email: {{ORG_SIGNER_EMAIL}}
Date: {{ORG_SIGNED_DATE}}

{{VENDOR_LEGAL_NAME}}
Name: {{VENDOR_SIGNER_NAME}}
Title: {{VENDOR_SIGNER_TITLE}}
Date: {{VENDOR_SIGNED_DATE}}
"""


def latest(session: Session) -> AgreementTemplate:
    template = session.exec(
        select(AgreementTemplate).order_by(AgreementTemplate.version.desc())
    ).first()
    if not template:
        raise NotFound("no agreement template has been published")
    return template

def get(session: Session, version: int) -> AgreementTemplate:
    template = session.get(AgreementTemplate, version)
    if not template:
        raise NotFound(f"template version {version} not found")
    return template

def list_versions(session: Session) -> List[AgreementTemplate]:
    return session.exec(select(AgreementTemplate).order_by(AgreementTemplate.version.desc())).all()

def publish(
    session: Session,
    body_text: str,
    name: str = DEFAULT_TEMPLATE_NAME,
    vendor_legal_name: str = VENDOR_LEGAL_NAME,
    vendor_contact_email: str = VENDOR_CONTACT_EMAIL,
    version: Optional[int] = None,
) -> AgreementTemplate:
    if not body_text or not body_text.strip():
        raise ValidationError("template body is required", fields=["body_text"])
    current = session.exec(
        select(AgreementTemplate).order_by(AgreementTemplate.version.desc())
    ).first()
    next_version = (current.version + 1) if current else 1
    if version is not None:
        if version < next_version:
            raise ValidationError(
                f"template version must be greater than {next_version - 1}", fields=["version"]
            )
        next_version = version
    template = AgreementTemplate(
        version=next_version,
        name=name,
        body_text=body_text,
        vendor_legal_name=vendor_legal_name,
        vendor_contact_email=vendor_contact_email,
        sha256=sha256_text(body_text),
    )
    session.add(template)
    session.commit()
    session.refresh(template)
    logger.info("published template %s version %s", template.name, template.version)
    return template

def seed_default(session: Session) -> Optional[AgreementTemplate]:
    if session.exec(select(AgreementTemplate)).first():
        return None
    return publish(session, DEFAULT_TEMPLATE_BODY)

def _date(value) -> str:
    return value.date().isoformat() if value else BLANK

def render_text(template: AgreementTemplate, organization: Organization, agreement: Optional[Agreement] = None) -> str:
    """Fill template placeholders; unsigned slots are left as blank lines."""
    a = agreement
    values = {
        "ORGANIZATION_NAME": organization.name,
        "VENDOR_LEGAL_NAME": template.vendor_legal_name,
        "VENDOR_CONTACT_EMAIL": template.vendor_contact_email,
        "ORG_SIGNER_NAME": (a and a.org_signer_name) or BLANK,
        "ORG_SIGNER_TITLE": (a and a.org_signer_title) or BLANK,
        "ORG_SIGNER_EMAIL": (a and a.org_signer_email) or BLANK,
        "ORG_SIGNED_DATE": _date(a and a.org_signed_at),
        "VENDOR_SIGNER_NAME": (a and a.vendor_signer_name) or BLANK,
        "VENDOR_SIGNER_TITLE": (a and a.vendor_signer_title) or BLANK,
        "VENDOR_SIGNED_DATE": _date(a and a.vendor_signed_at),
    }
    text = template.body_text
    for key, value in values.items():
        text = text.replace("{{" + key + "}}", value)
    return text
