"""
Role-Based Access Control (RBAC) Engine
========================================

Static permission matrix consulted by the policy evaluator:

    role -> resource type -> allowed actions

Four built-in roles with narrowing permission sets:
- admin: Full control, including administrative actions
- compliance_officer: Read/write on compliance and audit material
- analyst: Read-only across business data, execute on tasks
- viewer: Minimal read-only access

A subject is authorized when ANY of its roles grants the action on the
resource type. Unknown roles and missing pairs are denials, never errors.

Reference: NIST INCITS 359-2004 (RBAC Standard)
"""

from typing import Dict, FrozenSet, Iterable, Mapping, Optional, Set, Tuple

from ..models.entities import ActionType, ResourceType

R = ActionType.READ
W = ActionType.WRITE
D = ActionType.DELETE
X = ActionType.EXECUTE
A = ActionType.ADMIN
E = ActionType.EXPORT

PermissionMatrix = Mapping[str, Mapping[ResourceType, FrozenSet[ActionType]]]

DEFAULT_PERMISSION_MATRIX: PermissionMatrix = {
    'admin': {
        ResourceType.EMPLOYEE_DATA: frozenset({R, W, D, E, A}),
        ResourceType.COMPLIANCE_DATA: frozenset({R, W, D, E, A}),
        ResourceType.FINANCIAL_DATA: frozenset({R, W, D, E, A}),
        ResourceType.CONTRACT_DATA: frozenset({R, W, D, E, A}),
        ResourceType.AUDIT_DATA: frozenset({R, E, A}),
        ResourceType.SYSTEM_CONFIG: frozenset({R, W, A}),
        ResourceType.API_ENDPOINT: frozenset({R, W, X, A}),
        ResourceType.AGENT_TASK: frozenset({R, W, X, A}),
    },
    'compliance_officer': {
        ResourceType.EMPLOYEE_DATA: frozenset({R, W}),
        ResourceType.COMPLIANCE_DATA: frozenset({R, W, E}),
        ResourceType.FINANCIAL_DATA: frozenset({R}),
        ResourceType.CONTRACT_DATA: frozenset({R, W}),
        ResourceType.AUDIT_DATA: frozenset({R, W, E}),
        ResourceType.SYSTEM_CONFIG: frozenset({R}),
        ResourceType.API_ENDPOINT: frozenset({R, X}),
        ResourceType.AGENT_TASK: frozenset({R, X}),
    },
    'analyst': {
        ResourceType.EMPLOYEE_DATA: frozenset({R}),
        ResourceType.COMPLIANCE_DATA: frozenset({R}),
        ResourceType.FINANCIAL_DATA: frozenset({R}),
        ResourceType.CONTRACT_DATA: frozenset({R}),
        ResourceType.AUDIT_DATA: frozenset({R}),
        ResourceType.SYSTEM_CONFIG: frozenset(),
        ResourceType.API_ENDPOINT: frozenset({R, X}),
        ResourceType.AGENT_TASK: frozenset({R, X}),
    },
    'viewer': {
        ResourceType.EMPLOYEE_DATA: frozenset({R}),
        ResourceType.COMPLIANCE_DATA: frozenset({R}),
        ResourceType.FINANCIAL_DATA: frozenset(),
        ResourceType.CONTRACT_DATA: frozenset({R}),
        ResourceType.AUDIT_DATA: frozenset(),
        ResourceType.SYSTEM_CONFIG: frozenset(),
        ResourceType.API_ENDPOINT: frozenset({R}),
        ResourceType.AGENT_TASK: frozenset({R}),
    },
}


class RBACEngine:
    """
    RBAC decision engine over an immutable permission matrix.

    Holds no per-user state, so one instance is shared by all
    concurrent evaluations.
    """

    def __init__(self, matrix: Optional[PermissionMatrix] = None):
        self.matrix = matrix if matrix is not None else DEFAULT_PERMISSION_MATRIX

    def check_access(
        self,
        roles: Iterable[str],
        resource_type: ResourceType,
        action: ActionType,
    ) -> Tuple[bool, str]:
        """
        Check whether any of ``roles`` grants ``action`` on ``resource_type``.

        Returns:
            Tuple of (granted, reason_string)
        """
        roles = list(roles)
        for role in roles:
            allowed = self.matrix.get(role, {}).get(resource_type, frozenset())
            if action in allowed:
                return True, f"'{action.value}' on {resource_type.value} granted via role '{role}'"

        return False, (
            f"No role in {roles} grants '{action.value}' on {resource_type.value}"
        )

    def is_authorized(
        self,
        roles: Iterable[str],
        resource_type: ResourceType,
        action: ActionType,
    ) -> bool:
        granted, _ = self.check_access(roles, resource_type, action)
        return granted

    def get_effective_permissions(self, roles: Iterable[str]) -> Dict[ResourceType, Set[ActionType]]:
        """
        Merge the grants of every role.

        Args:
            roles: Role names held by the subject

        Returns:
            Mapping of resource type to the union of allowed actions
        """
        permissions: Dict[ResourceType, Set[ActionType]] = {}
        for role in roles:
            for resource_type, actions in self.matrix.get(role, {}).items():
                permissions.setdefault(resource_type, set()).update(actions)
        return permissions

    def known_roles(self) -> Tuple[str, ...]:
        return tuple(self.matrix.keys())
