"""Removal of role assignments whose principal no longer exists.

An assignment is orphaned when its principal id does not resolve to a
directory object, typically because the user, group or service principal
was deleted while the grant stayed behind.

Standing ARM assignments are removed with ``DELETE``; eligibilities with an
``AdminRemove`` schedule request. Removing either requires write access on
role assignments, so :meth:`OrphanReconciler.ensure_elevated` can first
activate the caller's ``Owner`` or ``Role Based Access Control
Administrator`` eligibilities.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from azpim.application.client import ListFilter

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from azpim.application.client import PimClient
    from azpim.domain.assignments import Assignment
    from azpim.domain.roles import RoleAssignment
    from azpim.domain.scope import Scope

    Confirm = Callable[[str], bool]

logger = logging.getLogger(__name__)

ELEVATION_ROLES: tuple[str, ...] = ("Owner", "Role Based Access Control Administrator")


def prompt_confirm(message: str) -> bool:
    """Ask on the terminal; only ``y`` or ``yes`` confirms."""
    answer = input(f"{message} [y/N] ")
    return answer.strip().lower() in {"y", "yes"}


class OrphanReconciler:
    """Finds and deletes orphaned assignments below a scope.

    Args:
        client: PIM client used for listings and deletes.
        yes: Delete without asking.
        confirm: Per-entry confirmation callback, used unless ``yes``.
    """

    def __init__(
        self,
        client: PimClient,
        yes: bool = False,
        confirm: Confirm = prompt_confirm,
    ) -> None:
        self._client = client
        self._yes = yes
        self._confirm = confirm

    async def ensure_elevated(
        self,
        scopes: Iterable[Scope] | None = None,
        justification: str = "cleaning up orphaned resources",
        duration: timedelta = timedelta(hours=8),
        timeout: timedelta = timedelta(minutes=5),
    ) -> set[Scope]:
        """Activate the caller's elevation roles and wait for them.

        Only subscription-rooted assignments of :data:`ELEVATION_ROLES` are
        considered; with ``scopes``, only those covering one of them.

        Returns:
            Scopes at which the caller holds an elevation role.
        """
        wanted = list(scopes) if scopes is not None else None
        active = await self._client.list_active_role_assignments(None, ListFilter.AS_TARGET)
        eligible = await self._client.list_eligible_role_assignments(None, ListFilter.AS_TARGET)

        covered: set[Scope] = set()
        to_activate: set[RoleAssignment] = set()
        for entry in [*eligible, *active]:
            if entry.scope.subscription() is None:
                continue
            if not any(entry.role.matches(role) for role in ELEVATION_ROLES):
                continue
            if wanted is not None and not any(entry.scope.contains(s) for s in wanted):
                continue
            logger.info("elevation_role_found", extra={"scope_name": entry.scope_name})
            covered.add(entry.scope)
            if entry not in active:
                to_activate.add(entry)

        if to_activate:
            await self._client.activate_role_assignment_set(to_activate, justification, duration)
            await self._client.wait_for_role_activation(to_activate, timeout)
        return covered

    async def _scopes(self, scope: Scope, nested: bool) -> list[Scope]:
        scopes = {scope}
        if nested:
            scopes.update(child.id for child in await self._client.eligible_child_resources(scope))
        return sorted(scopes)

    def _approved(self, message: str) -> bool:
        if self._yes:
            return True
        return self._confirm(message)

    async def delete_orphaned_role_assignments(
        self,
        scope: Scope,
        nested: bool = False,
    ) -> list[Assignment]:
        """Delete standing assignments held by unresolvable principals.

        Only assignments made directly at each visited scope are
        considered; inherited ones are handled at their own scope.

        Returns:
            The deleted assignments.
        """
        deleted: list[Assignment] = []
        for current in await self._scopes(scope, nested):
            logger.info("checking_orphaned_role_assignments", extra={"scope": str(current)})
            definitions = await self._client.role_definitions(current)
            role_names = {d.id: d.properties.role_name for d in definitions}

            for assignment in await self._client.list_role_assignments(current):
                if assignment.object is not None or assignment.properties.scope != current:
                    continue
                props = assignment.properties
                role = role_names.get(props.role_definition_id, props.role_definition_id)
                message = (
                    f"delete orphaned {role} assignment for {props.principal_type} "
                    f"{props.principal_id} at {props.scope}?"
                )
                if not self._approved(message):
                    logger.info("orphan_skipped", extra={"assignment_id": assignment.id})
                    continue
                await self._client.delete_role_assignment(assignment)
                deleted.append(assignment)
        return deleted

    async def delete_orphaned_eligible_role_assignments(
        self,
        scope: Scope,
        nested: bool = False,
    ) -> list[RoleAssignment]:
        """Remove eligibilities held by unresolvable principals.

        Returns:
            The removed eligibilities.
        """
        deleted: list[RoleAssignment] = []
        for current in await self._scopes(scope, nested):
            logger.info("checking_orphaned_eligibilities", extra={"scope": str(current)})
            eligible = await self._client.list_eligible_role_assignments(
                current, ListFilter.AT_SCOPE
            )
            for entry in eligible:
                if entry.object is not None or entry.scope != current:
                    continue
                message = (
                    f"delete orphaned eligibility {entry.role} for {entry.principal_type} "
                    f"{entry.principal_id} at {entry.scope}?"
                )
                if not self._approved(message):
                    logger.info("orphan_skipped", extra={"principal_id": entry.principal_id})
                    continue
                await self._client.delete_eligible_role_assignment(entry)
                deleted.append(entry)
        return deleted

    async def reconcile(
        self,
        scope: Scope,
        nested: bool = False,
    ) -> tuple[list[Assignment], list[RoleAssignment]]:
        """Delete orphaned standing assignments, then orphaned eligibilities."""
        assignments = await self.delete_orphaned_role_assignments(scope, nested)
        eligibilities = await self.delete_orphaned_eligible_role_assignments(scope, nested)
        logger.info(
            "orphan_cleanup_complete",
            extra={
                "scope": str(scope),
                "assignments": len(assignments),
                "eligibilities": len(eligibilities),
            },
        )
        return assignments, eligibilities
