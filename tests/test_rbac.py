"""
Tests for the RBAC permission matrix.
"""
import pytest

from zerotrust.core.rbac_engine import RBACEngine
from zerotrust.models.entities import ActionType, ResourceType


@pytest.mark.parametrize("role, resource_type, action, expected", [
    ("admin", ResourceType.EMPLOYEE_DATA, ActionType.DELETE, True),
    ("admin", ResourceType.SYSTEM_CONFIG, ActionType.ADMIN, True),
    ("admin", ResourceType.AUDIT_DATA, ActionType.WRITE, False),
    ("compliance_officer", ResourceType.COMPLIANCE_DATA, ActionType.EXPORT, True),
    ("compliance_officer", ResourceType.FINANCIAL_DATA, ActionType.WRITE, False),
    ("analyst", ResourceType.AGENT_TASK, ActionType.EXECUTE, True),
    ("analyst", ResourceType.SYSTEM_CONFIG, ActionType.READ, False),
    ("viewer", ResourceType.FINANCIAL_DATA, ActionType.READ, False),
    ("viewer", ResourceType.CONTRACT_DATA, ActionType.READ, True),
    ("intern", ResourceType.API_ENDPOINT, ActionType.READ, False),
])
def test_rbac_permission_check(role, resource_type, action, expected):
    assert RBACEngine().is_authorized([role], resource_type, action) == expected


def test_any_role_grants():
    granted, reason = RBACEngine().check_access(
        ["viewer", "compliance_officer"], ResourceType.AUDIT_DATA, ActionType.WRITE
    )
    assert granted
    assert "compliance_officer" in reason


def test_denial_reason_names_the_request():
    granted, reason = RBACEngine().check_access(["viewer"], ResourceType.AUDIT_DATA, ActionType.READ)
    assert not granted
    assert "audit_data" in reason


def test_effective_permissions_are_merged():
    permissions = RBACEngine().get_effective_permissions(["viewer", "analyst"])
    assert permissions[ResourceType.AGENT_TASK] == {ActionType.READ, ActionType.EXECUTE}
    assert permissions[ResourceType.FINANCIAL_DATA] == {ActionType.READ}


def test_known_roles():
    assert set(RBACEngine().known_roles()) == {"admin", "compliance_officer", "analyst", "viewer"}
