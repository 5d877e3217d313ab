"""Azure PIM application layer -- client facade, orchestration, cleanup and reports."""

from azpim.application.client import ListFilter, PimClient
from azpim.application.orchestrator import RoleAssignmentOrchestrator
from azpim.application.reconciler import ELEVATION_ROLES, OrphanReconciler, prompt_confirm
from azpim.application.report import RoleReportEntry, build_role_report, remove_dominated

__all__ = [
    "ELEVATION_ROLES",
    "ListFilter",
    "OrphanReconciler",
    "PimClient",
    "RoleAssignmentOrchestrator",
    "RoleReportEntry",
    "build_role_report",
    "prompt_confirm",
    "remove_dominated",
]
