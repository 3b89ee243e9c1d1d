import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, func, or_, update
from sqlmodel import Session, col, select

from .errors import InvalidTransition, NotFound
from .models import Agreement, AgreementStatus, AgreementTemplate, Organization
from .utils import utcnow

logger = logging.getLogger(__name__)

SUPERSEDED = AgreementStatus.SUPERSEDED.value


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

def _active_join():
    return and_(Agreement.organization_id == Organization.id, Agreement.status != SUPERSEDED)


class AgreementStore:
    """Persistence for agreements. Transitions go through `update`, a compare-and-set
    on (id, status, lock_version) so racing writers cannot both succeed."""

    def __init__(self, session: Session):
        self.session = session

    def get_organization(self, organization_id: str) -> Organization:
        org = self.session.get(Organization, organization_id)
        if not org:
            raise NotFound("organization not found")
        return org

    def get(self, agreement_id: int) -> Agreement:
        agreement = self.session.get(Agreement, agreement_id)
        if not agreement:
            raise NotFound("agreement not found")
        return agreement

    def find_active(self, organization_id: str) -> Optional[Agreement]:
        return self.session.exec(
            select(Agreement)
            .where(Agreement.organization_id == organization_id, Agreement.status != SUPERSEDED)
            .order_by(Agreement.id.desc())
        ).first()

    def get_active(self, organization_id: str) -> Agreement:
        agreement = self.find_active(organization_id)
        if not agreement:
            raise NotFound("no agreement found for this organization")
        return agreement

    def get_history(self, organization_id: str) -> List[Agreement]:
        return self.session.exec(
            select(Agreement)
            .where(Agreement.organization_id == organization_id)
            .order_by(Agreement.created_at.desc(), Agreement.id.desc())
        ).all()

    def has_executed(self, organization_id: str) -> bool:
        found = self.session.exec(
            select(Agreement.id).where(
                Agreement.organization_id == organization_id,
                Agreement.status == AgreementStatus.EXECUTED.value,
            )
        ).first()
        return found is not None

    def create(
        self,
        organization_id: str,
        template: AgreementTemplate,
        previous_agreement_id: Optional[int] = None,
    ) -> Agreement:
        agreement = Agreement(
            organization_id=organization_id,
            template_version=template.version,
            template_sha256=template.sha256,
            status=AgreementStatus.AWAITING_ORG_SIGNATURE.value,
            previous_agreement_id=previous_agreement_id,
        )
        self.session.add(agreement)
        self.session.flush()
        return agreement

    def update(self, agreement: Agreement, expected_status: str, **values) -> Agreement:
        stmt = (
            update(Agreement)
            .where(
                Agreement.id == agreement.id,
                Agreement.status == expected_status,
                Agreement.lock_version == agreement.lock_version,
            )
            .values(lock_version=agreement.lock_version + 1, updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            current = self.session.get(Agreement, agreement.id)
            current_status = current.status if current else "unknown"
            logger.info(
                "lost update on agreement %s (expected %s, found %s)",
                agreement.id, expected_status, current_status,
            )
            raise InvalidTransition("agreement was modified by another request", current_status)
        self.session.refresh(agreement)
        return agreement

    def set_document(self, agreement_id: int, document_key: str, document_sha256: str) -> bool:
        """Write-once document reference; False when one was already recorded."""
        result = self.session.exec(
            update(Agreement)
            .where(Agreement.id == agreement_id, col(Agreement.document_key).is_(None))
            .values(document_key=document_key, document_sha256=document_sha256, document_rendered_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def _listing_filters(self, search: Optional[str], status: Optional[str]) -> list:
        filters = []
        if search and search.strip():
            # literal substring match; LIKE wildcards in the input are escaped
            like = f"%{_escape_like(search.strip())}%"
            filters.append(or_(
                col(Organization.name).ilike(like, escape="\\"),
                col(Organization.subdomain).ilike(like, escape="\\"),
            ))
        if status == AgreementStatus.NOT_STARTED.value:
            filters.append(col(Agreement.id).is_(None))
        elif status:
            filters.append(Agreement.status == status)
        return filters

    def list_active_across_orgs(
        self,
        search: Optional[str] = None,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[Tuple[Organization, Optional[Agreement]]], int]:
        filters = self._listing_filters(search, status)
        total = self.session.exec(
            select(func.count(Organization.id))
            .select_from(Organization)
            .join(Agreement, _active_join(), isouter=True)
            .where(*filters)
        ).one()
        rows = self.session.exec(
            select(Organization, Agreement)
            .join(Agreement, _active_join(), isouter=True)
            .where(*filters)
            .order_by(Organization.name, Organization.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return rows, total

    def count_by_status(self) -> Dict[str, int]:
        """Organizations per active status; orgs without an active row count as not_started."""
        rows = self.session.exec(
            select(Agreement.status, func.count(Organization.id))
            .select_from(Organization)
            .join(Agreement, _active_join(), isouter=True)
            .group_by(Agreement.status)
        ).all()
        counts: Dict[str, int] = {}
        for status, count in rows:
            key = status or AgreementStatus.NOT_STARTED.value
            counts[key] = counts.get(key, 0) + count
        return counts
