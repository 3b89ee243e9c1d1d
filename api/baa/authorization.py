"""Role/action authorization for agreement operations.

The gate only looks at the principal's role and organization scope. It never
consults agreement state, so a denial here is always distinguishable from a
lifecycle rejection.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from .errors import Unauthorized

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ORG_ADMIN = "org_admin"
    ORG_MEMBER = "org_member"
    VENDOR_ADMIN = "vendor_admin"


class Action(str, Enum):
    VIEW = "view"
    SIGN = "sign"
    COUNTERSIGN = "countersign"
    VOID = "void"
    LIST_ALL = "list_all"
    SUPERSEDE = "supersede"
    PUBLISH_TEMPLATE = "publish_template"


VENDOR_ONLY_ACTIONS = {
    Action.COUNTERSIGN,
    Action.VOID,
    Action.LIST_ALL,
    Action.SUPERSEDE,
    Action.PUBLISH_TEMPLATE,
}

ORG_ROLES = {Role.ORG_ADMIN.value, Role.ORG_MEMBER.value}


class Principal(BaseModel):
    principal_id: str
    organization_id: Optional[str] = None
    role: str

    @property
    def actor(self) -> str:
        return f"user:{self.principal_id}"

    @property
    def is_vendor_admin(self) -> bool:
        return self.role == Role.VENDOR_ADMIN.value

    def belongs_to(self, organization_id: Optional[str]) -> bool:
        return (
            self.role in ORG_ROLES
            and self.organization_id is not None
            and self.organization_id == organization_id
        )


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None


ALLOW = Decision(True)


def authorize(principal: Principal, organization_id: Optional[str], action) -> Decision:
    try:
        action = Action(action)
    except ValueError:
        return Decision(False, f"unknown action {action!r}")

    if action in VENDOR_ONLY_ACTIONS:
        if principal.is_vendor_admin:
            return ALLOW
        return Decision(False, f"{action.value} requires vendor_admin")

    if action is Action.SIGN:
        if principal.role != Role.ORG_ADMIN.value:
            return Decision(False, "sign requires org_admin")
        if not principal.belongs_to(organization_id):
            return Decision(False, "principal is not a member of this organization")
        return ALLOW

    # view
    if principal.is_vendor_admin or principal.belongs_to(organization_id):
        return ALLOW
    return Decision(False, "principal is not a member of this organization")


def require(principal: Principal, organization_id: Optional[str], action) -> None:
    decision = authorize(principal, organization_id, action)
    if not decision.allowed:
        logger.warning(
            "denied %s on org %s for %s (%s): %s",
            getattr(action, "value", action), organization_id, principal.actor, principal.role, decision.reason,
        )
        raise Unauthorized("not permitted")
