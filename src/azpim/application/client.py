"""High-level PIM client.

:class:`PimClient` composes the request backend, the object resolver and
the orchestrator into one object owning all caches and the HTTP client.

Example:
    >>> async with PimClient() as client:
    ...     eligible = await client.list_eligible_role_assignments()
    ...     entry = eligible.find("Owner", "/subscriptions/...")
    ...     await client.activate_role_assignment(entry, "deploy fix", timedelta(hours=1))
"""

from __future__ import annotations

import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import pydantic

from azpim.application.orchestrator import RoleAssignmentOrchestrator
from azpim.domain.assignments import Assignment, Assignments
from azpim.domain.definitions import Definition, Definitions
from azpim.domain.exceptions import ParseError, ValidationError
from azpim.domain.resources import ChildResource
from azpim.domain.roles import RoleAssignments
from azpim.infra.backend import Backend, Operation
from azpim.infra.cache import ExpiringMap
from azpim.infra.graph import ObjectResolver
from azpim.infra.settings import get_pim_settings

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import timedelta

    import httpx

    from azpim.domain.objects import Object
    from azpim.domain.roles import RoleAssignment
    from azpim.domain.scope import Scope
    from azpim.infra.settings import PimSettings
    from azpim.infra.tokens import TokenProvider

logger = logging.getLogger(__name__)


class ListFilter(StrEnum):
    """``$filter`` values accepted by the listing endpoints."""

    AS_TARGET = "asTarget()"
    AT_SCOPE = "atScope()"


class PimClient:
    """Entry point for listing, activating and cleaning up role assignments.

    Args:
        token_provider: Bearer token source. Defaults to the Azure CLI.
        settings: Client settings. Defaults to :func:`get_pim_settings`.
        client: Optional shared ``httpx.AsyncClient``.
        backend: Pre-built backend; overrides ``token_provider`` and ``client``.
    """

    def __init__(
        self,
        token_provider: TokenProvider | None = None,
        settings: PimSettings | None = None,
        client: httpx.AsyncClient | None = None,
        backend: Backend | None = None,
    ) -> None:
        self._settings = settings or get_pim_settings()
        self._backend = backend or Backend(token_provider, self._settings, client)
        self._resolver = ObjectResolver(self._backend, self._settings.cache_ttl)
        self._definitions: ExpiringMap[Scope, list[Definition]] = ExpiringMap(
            self._settings.cache_ttl
        )
        self._orchestrator = RoleAssignmentOrchestrator(
            self._backend, self._list_own_active, self._settings
        )

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def resolver(self) -> ObjectResolver:
        return self._resolver

    @property
    def orchestrator(self) -> RoleAssignmentOrchestrator:
        return self._orchestrator

    async def current_principal_id(self) -> str:
        return await self._backend.principal_id()

    # -- listings ---------------------------------------------------------

    async def list_eligible_role_assignments(
        self,
        scope: Scope | None = None,
        list_filter: ListFilter | None = None,
    ) -> RoleAssignments:
        """List eligible assignments.

        Without a scope the caller's own eligibilities are listed
        (``asTarget()``). With a scope, all eligibilities at that scope are
        listed (``atScope()``) and each entry carries its resolved principal.
        """
        return await self._list_schedule_instances(
            Operation.ROLE_ELIGIBILITY_SCHEDULE_INSTANCES, scope, list_filter
        )

    async def list_active_role_assignments(
        self,
        scope: Scope | None = None,
        list_filter: ListFilter | None = None,
    ) -> RoleAssignments:
        """List active assignments; see :meth:`list_eligible_role_assignments`."""
        return await self._list_schedule_instances(
            Operation.ROLE_ASSIGNMENT_SCHEDULE_INSTANCES, scope, list_filter
        )

    async def _list_own_active(self) -> RoleAssignments:
        return await self.list_active_role_assignments(None, ListFilter.AS_TARGET)

    async def _list_schedule_instances(
        self,
        operation: Operation,
        scope: Scope | None,
        list_filter: ListFilter | None,
    ) -> RoleAssignments:
        if list_filter is None:
            list_filter = ListFilter.AS_TARGET if scope is None else ListFilter.AT_SCOPE
        with_principal = list_filter is ListFilter.AT_SCOPE

        builder = self._backend.request("GET", operation).query("$filter", list_filter.value)
        if scope is not None:
            builder = builder.scope(scope)
        body = await builder.send()
        assignments = RoleAssignments.parse(body, with_principal=with_principal)
        logger.debug(
            "role_assignments_listed",
            extra={
                "operation": str(operation),
                "scope": str(scope) if scope else None,
                "count": len(assignments),
            },
        )
        if not with_principal:
            return assignments

        objects = await self._resolver.get_objects_by_ids(
            entry.principal_id for entry in assignments if entry.principal_id
        )
        return RoleAssignments(
            entry.with_object(objects.get(entry.principal_id or "")) for entry in assignments
        )

    async def list_role_assignments(
        self,
        scope: Scope,
        list_filter: ListFilter | None = ListFilter.AT_SCOPE,
    ) -> list[Assignment]:
        """List plain ARM role assignments at ``scope`` with resolved principals.

        Raises:
            ParseError: If the listing does not have the expected shape.
        """
        builder = self._backend.request("GET", Operation.ROLE_ASSIGNMENTS).scope(scope)
        if list_filter is not None:
            builder = builder.query("$filter", list_filter.value)
        body = await builder.send()
        try:
            assignments = Assignments.model_validate(body).value
        except pydantic.ValidationError as exc:
            raise ParseError("unable to parse role assignments", body) from exc

        objects = await self._resolver.get_objects_by_ids(
            entry.properties.principal_id for entry in assignments
        )
        return [
            entry.model_copy(update={"object": objects.get(entry.properties.principal_id)})
            for entry in assignments
        ]

    async def role_definitions(self, scope: Scope) -> list[Definition]:
        """Role definitions available at ``scope``, cached per scope."""
        cached = self._definitions.get(scope)
        if cached is not None:
            return cached

        body = await self._backend.request("GET", Operation.ROLE_DEFINITIONS).scope(scope).send()
        try:
            definitions = Definitions.model_validate(body).value
        except pydantic.ValidationError as exc:
            raise ParseError("unable to parse role definitions", body) from exc
        self._definitions.insert(scope, definitions)
        return definitions

    async def eligible_child_resources(self, scope: Scope) -> set[ChildResource]:
        body = await (
            self._backend.request("GET", Operation.ELIGIBLE_CHILD_RESOURCES).scope(scope).send()
        )
        return ChildResource.parse(body)

    async def get_objects_by_ids(self, ids: Iterable[str]) -> dict[str, Object]:
        return await self._resolver.get_objects_by_ids(ids)

    async def group_members(self, group_id: str, nested: bool = False) -> frozenset[Object]:
        return await self._resolver.group_members(group_id, nested)

    # -- role requests ----------------------------------------------------

    async def activate_role_assignment(
        self,
        assignment: RoleAssignment,
        justification: str,
        duration: timedelta | int,
    ) -> str:
        return await self._orchestrator.activate(assignment, justification, duration)

    async def extend_role_assignment(
        self,
        assignment: RoleAssignment,
        justification: str,
        duration: timedelta | int,
    ) -> str:
        return await self._orchestrator.extend(assignment, justification, duration)

    async def deactivate_role_assignment(self, assignment: RoleAssignment) -> str:
        return await self._orchestrator.deactivate(assignment)

    async def activate_role_assignment_set(
        self,
        assignments: Iterable[RoleAssignment],
        justification: str,
        duration: timedelta | int,
        concurrency: int | None = None,
    ) -> None:
        await self._orchestrator.activate_set(assignments, justification, duration, concurrency)

    async def deactivate_role_assignment_set(
        self,
        assignments: Iterable[RoleAssignment],
        concurrency: int | None = None,
    ) -> None:
        await self._orchestrator.deactivate_set(assignments, concurrency)

    async def wait_for_role_activation(
        self,
        assignments: Iterable[RoleAssignment],
        timeout: timedelta | float,
    ) -> None:
        await self._orchestrator.wait_for_role_activation(assignments, timeout)

    # -- deletes ----------------------------------------------------------

    async def delete_role_assignment(self, assignment: Assignment) -> Any:
        """Delete a plain ARM role assignment."""
        body = await (
            self._backend.request("DELETE", Operation.ROLE_ASSIGNMENTS)
            .scope(assignment.properties.scope)
            .extra(f"/{assignment.name}")
            .send()
        )
        logger.info(
            "role_assignment_deleted",
            extra={"assignment_id": assignment.id, "scope": str(assignment.properties.scope)},
        )
        return body

    async def delete_eligible_role_assignment(self, assignment: RoleAssignment) -> str:
        """Remove an eligibility from its principal with an ``AdminRemove`` request.

        Raises:
            ValidationError: If the assignment carries no principal id.
        """
        if not assignment.principal_id:
            raise ValidationError(
                "missing principal id",
                role=str(assignment.role),
                scope=str(assignment.scope),
            )
        return await self._orchestrator.submit_schedule_request(
            Operation.ROLE_ELIGIBILITY_SCHEDULE_REQUESTS,
            assignment,
            "AdminRemove",
            principal_id=assignment.principal_id,
        )

    # -- lifecycle --------------------------------------------------------

    def clear_cache(self) -> None:
        self._resolver.clear_cache()
        self._definitions.clear()

    async def aclose(self) -> None:
        await self._backend.aclose()

    async def __aenter__(self) -> PimClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
