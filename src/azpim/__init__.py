"""Azure Privileged Identity Management client.

List, activate, extend and deactivate PIM role assignments, resolve the
principals behind them and clean up assignments left by deleted principals.
"""

from azpim.application import (
    ListFilter,
    OrphanReconciler,
    PimClient,
    RoleReportEntry,
    build_role_report,
)
from azpim.domain import (
    Object,
    ObjectType,
    PimError,
    Role,
    RoleAssignment,
    RoleAssignments,
    Scope,
)
from azpim.infra import PimSettings, configure_logging

__version__ = "0.1.0"

__all__ = [
    "ListFilter",
    "Object",
    "ObjectType",
    "OrphanReconciler",
    "PimClient",
    "PimError",
    "PimSettings",
    "Role",
    "RoleAssignment",
    "RoleAssignments",
    "RoleReportEntry",
    "Scope",
    "__version__",
    "build_role_report",
    "configure_logging",
]
