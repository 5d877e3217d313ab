"""Azure PIM domain -- pure Python value objects and errors.

Scopes, roles, role assignments, directory objects, role definitions and the
exception hierarchy. No network access happens in this package.
"""

from azpim.domain.assignments import Assignment, AssignmentProperties, Assignments
from azpim.domain.definitions import Definition, Definitions, Permission
from azpim.domain.durations import format_duration
from azpim.domain.exceptions import (
    ActivationTimeoutError,
    BatchOperationError,
    NoRolesSpecifiedError,
    NotFoundError,
    ParseError,
    PimError,
    RateLimitedError,
    RequestFailedError,
    RetriesExhaustedError,
    ScopeError,
    TokenError,
    TransientRequestError,
    ValidationError,
)
from azpim.domain.objects import Object, ObjectType
from azpim.domain.resources import ChildResource
from azpim.domain.roles import Role, RoleAssignment, RoleAssignments
from azpim.domain.scope import Scope

__all__ = [
    "ActivationTimeoutError",
    "Assignment",
    "AssignmentProperties",
    "Assignments",
    "BatchOperationError",
    "ChildResource",
    "Definition",
    "Definitions",
    "NoRolesSpecifiedError",
    "NotFoundError",
    "Object",
    "ObjectType",
    "ParseError",
    "Permission",
    "PimError",
    "RateLimitedError",
    "RequestFailedError",
    "RetriesExhaustedError",
    "Role",
    "RoleAssignment",
    "RoleAssignments",
    "Scope",
    "ScopeError",
    "TokenError",
    "TransientRequestError",
    "ValidationError",
    "format_duration",
]
