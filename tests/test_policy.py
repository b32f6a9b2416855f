"""
Unit tests for the role and ownership policy.
"""

import uuid

import pytest

from src.auth.policy import ALLOW, Action, authorize, check_ownership, check_role, requires_ownership
from src.common.exceptions import ForbiddenError
from src.common.utils.global_messages import GlobalMessages
from src.models.models import UserRole

ADMIN, DOCTOR, PATIENT = UserRole.ADMIN, UserRole.DOCTOR, UserRole.PATIENT

EXPECTED = {
    Action.CREATE_PRESCRIPTION: {DOCTOR},
    Action.LIST_ALL_PRESCRIPTIONS: {ADMIN},
    Action.LIST_AUTHORED_PRESCRIPTIONS: {DOCTOR},
    Action.LIST_OWN_PRESCRIPTIONS: {PATIENT},
    Action.READ_PRESCRIPTION: {ADMIN, DOCTOR, PATIENT},
    Action.CONSUME_PRESCRIPTION: {PATIENT},
    Action.DOWNLOAD_PRESCRIPTION: {ADMIN, PATIENT},
    Action.LIST_DOCTORS: {ADMIN},
    Action.LIST_PATIENTS: {ADMIN, DOCTOR},
    Action.MANAGE_USERS: {ADMIN},
}


@pytest.mark.parametrize("action", list(Action))
@pytest.mark.parametrize("role", list(UserRole))
def test_role_table(action, role):
    decision = check_role(role, action)
    assert decision.allowed == (role in EXPECTED[action])


def test_denial_carries_a_reason_and_enforce_raises():
    decision = check_role(PATIENT, Action.CREATE_PRESCRIPTION)
    assert not decision.allowed
    assert "patient" in decision.reason
    with pytest.raises(ForbiddenError):
        decision.enforce()


def test_allow_enforce_is_a_no_op():
    ALLOW.enforce()


def test_only_patients_need_ownership():
    assert requires_ownership(PATIENT, Action.READ_PRESCRIPTION)
    assert requires_ownership(PATIENT, Action.CONSUME_PRESCRIPTION)
    assert requires_ownership(PATIENT, Action.DOWNLOAD_PRESCRIPTION)
    assert not requires_ownership(ADMIN, Action.READ_PRESCRIPTION)
    assert not requires_ownership(DOCTOR, Action.READ_PRESCRIPTION)


def test_ownership_matches_profile_ids():
    owner = uuid.uuid4()
    assert check_ownership(PATIENT, Action.READ_PRESCRIPTION, owner, owner).allowed
    denied = check_ownership(PATIENT, Action.READ_PRESCRIPTION, uuid.uuid4(), owner)
    assert not denied.allowed
    assert denied.reason == GlobalMessages.PRESCRIPTION_NOT_OWNED
    assert not check_ownership(PATIENT, Action.READ_PRESCRIPTION, None, owner).allowed


def test_ownership_ignored_for_admin_and_doctor():
    owner = uuid.uuid4()
    assert check_ownership(ADMIN, Action.DOWNLOAD_PRESCRIPTION, None, owner).allowed
    assert check_ownership(DOCTOR, Action.READ_PRESCRIPTION, None, owner).allowed


def test_authorize_checks_role_before_ownership():
    owner = uuid.uuid4()
    # Doctors are refused by role even when the ids happen to match
    decision = authorize(DOCTOR, Action.DOWNLOAD_PRESCRIPTION, owner, owner)
    assert not decision.allowed
    assert "doctor" in decision.reason

    assert authorize(PATIENT, Action.DOWNLOAD_PRESCRIPTION, owner, owner).allowed
    assert not authorize(PATIENT, Action.DOWNLOAD_PRESCRIPTION, uuid.uuid4(), owner).allowed
