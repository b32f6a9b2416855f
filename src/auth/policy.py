# src/auth/policy.py
"""
Role and ownership rules for every protected operation.

Services call these functions before touching data and act on the returned
PolicyDecision; nothing here reads the database. Profile ids passed in are the
ones looked up for the caller at request time, never values from the client.
"""

import enum
import uuid
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from src.common.exceptions import ForbiddenError
from src.common.utils.global_messages import GlobalMessages
from src.models.models import UserRole


class Action(str, enum.Enum):
    CREATE_PRESCRIPTION = "create_prescription"
    LIST_ALL_PRESCRIPTIONS = "list_all_prescriptions"
    LIST_AUTHORED_PRESCRIPTIONS = "list_authored_prescriptions"
    LIST_OWN_PRESCRIPTIONS = "list_own_prescriptions"
    READ_PRESCRIPTION = "read_prescription"
    CONSUME_PRESCRIPTION = "consume_prescription"
    DOWNLOAD_PRESCRIPTION = "download_prescription"
    LIST_DOCTORS = "list_doctors"
    LIST_PATIENTS = "list_patients"
    MANAGE_USERS = "manage_users"


ROLE_PERMISSIONS: Dict[Action, FrozenSet[UserRole]] = {
    Action.CREATE_PRESCRIPTION: frozenset({UserRole.DOCTOR}),
    Action.LIST_ALL_PRESCRIPTIONS: frozenset({UserRole.ADMIN}),
    Action.LIST_AUTHORED_PRESCRIPTIONS: frozenset({UserRole.DOCTOR}),
    Action.LIST_OWN_PRESCRIPTIONS: frozenset({UserRole.PATIENT}),
    Action.READ_PRESCRIPTION: frozenset({UserRole.ADMIN, UserRole.DOCTOR, UserRole.PATIENT}),
    Action.CONSUME_PRESCRIPTION: frozenset({UserRole.PATIENT}),
    Action.DOWNLOAD_PRESCRIPTION: frozenset({UserRole.ADMIN, UserRole.PATIENT}),
    Action.LIST_DOCTORS: frozenset({UserRole.ADMIN}),
    Action.LIST_PATIENTS: frozenset({UserRole.ADMIN, UserRole.DOCTOR}),
    Action.MANAGE_USERS: frozenset({UserRole.ADMIN}),
}

# (action, role) pairs that additionally require the caller to own the resource
OWNERSHIP_REQUIRED: FrozenSet[tuple] = frozenset({
    (Action.READ_PRESCRIPTION, UserRole.PATIENT),
    (Action.CONSUME_PRESCRIPTION, UserRole.PATIENT),
    (Action.DOWNLOAD_PRESCRIPTION, UserRole.PATIENT),
})


@dataclass(frozen=True)
class PolicyDecision:
    allowed: bool
    reason: Optional[str] = None

    def enforce(self) -> None:
        """Raise ForbiddenError when the decision is a denial."""
        if not self.allowed:
            raise ForbiddenError(self.reason)


ALLOW = PolicyDecision(allowed=True)


def requires_ownership(role: UserRole, action: Action) -> bool:
    return (action, role) in OWNERSHIP_REQUIRED


def check_role(role: UserRole, action: Action) -> PolicyDecision:
    """Decide whether the role may perform the action at all."""
    if role in ROLE_PERMISSIONS.get(action, frozenset()):
        return ALLOW
    return PolicyDecision(
        allowed=False,
        reason=f"Role '{role.value}' is not allowed to {action.value.replace('_', ' ')}.",
    )


def check_ownership(
    role: UserRole,
    action: Action,
    caller_profile_id: Optional[uuid.UUID],
    owner_profile_id: Optional[uuid.UUID],
) -> PolicyDecision:
    """Decide whether the caller owns the resource, for actions that need it."""
    if not requires_ownership(role, action):
        return ALLOW
    if caller_profile_id is None:
        return PolicyDecision(allowed=False, reason="No profile is linked to this account.")
    if owner_profile_id is None or caller_profile_id != owner_profile_id:
        return PolicyDecision(allowed=False, reason=GlobalMessages.PRESCRIPTION_NOT_OWNED)
    return ALLOW


def authorize(
    role: UserRole,
    action: Action,
    caller_profile_id: Optional[uuid.UUID] = None,
    owner_profile_id: Optional[uuid.UUID] = None,
) -> PolicyDecision:
    """Role check followed by the ownership check."""
    decision = check_role(role, action)
    if not decision.allowed:
        return decision
    return check_ownership(role, action, caller_profile_id, owner_profile_id)
