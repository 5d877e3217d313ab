"""Activation, extension and deactivation of role assignments.

Single operations submit one schedule request each. Set operations fan out
over a bounded worker pool: every item runs to completion regardless of its
siblings, and failures are reported together once all items finished.

The worker pool is created on the first set operation and reused for the
lifetime of the orchestrator. A later call asking for a different bound
keeps the existing pool and logs the mismatch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from azpim.domain.durations import format_duration
from azpim.domain.exceptions import (
    ActivationTimeoutError,
    BatchOperationError,
    NoRolesSpecifiedError,
)
from azpim.infra.backend import Operation, check_error_response

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from azpim.domain.roles import RoleAssignment, RoleAssignments
    from azpim.infra.backend import Backend
    from azpim.infra.settings import PimSettings

    ActiveListing = Callable[[], Awaitable[RoleAssignments]]

logger = logging.getLogger(__name__)


def _seconds(value: timedelta | float) -> float:
    return value.total_seconds() if isinstance(value, timedelta) else float(value)


class RoleAssignmentOrchestrator:
    """Submits role schedule requests for the signed-in principal.

    Args:
        backend: Request backend.
        list_active: Coroutine function returning the caller's currently
            active assignments; used while waiting for activation.
        settings: Settings providing the default pool bound and the
            polling interval. Defaults to the backend's settings.
    """

    def __init__(
        self,
        backend: Backend,
        list_active: ActiveListing,
        settings: PimSettings | None = None,
    ) -> None:
        self._backend = backend
        self._list_active = list_active
        self._settings = settings or backend.settings
        self._pool: asyncio.Semaphore | None = None
        self._pool_size: int | None = None

    async def submit_schedule_request(
        self,
        operation: Operation,
        assignment: RoleAssignment,
        request_type: str,
        *,
        principal_id: str | None = None,
        justification: str | None = None,
        duration: str | None = None,
    ) -> str:
        """PUT one schedule request at the assignment's scope.

        Args:
            operation: ``roleAssignmentScheduleRequests`` or
                ``roleEligibilityScheduleRequests``.
            assignment: The assignment the request is about.
            request_type: e.g. ``SelfActivate`` or ``AdminRemove``.
            principal_id: Principal to act on. Defaults to the caller.
            justification: Free-text reason, for activation and extension.
            duration: Formatted ISO-8601 duration, for activation and extension.

        Returns:
            The generated request id.
        """
        if principal_id is None:
            principal_id = await self._backend.principal_id()

        properties: dict[str, Any] = {
            "principalId": principal_id,
            "roleDefinitionId": assignment.role_definition_id,
            "requestType": request_type,
        }
        if justification is not None:
            properties["justification"] = justification
        if duration is not None:
            properties["scheduleInfo"] = {
                "expiration": {"duration": duration, "type": "AfterDuration"},
            }

        request_id = str(uuid4())
        await (
            self._backend.request("PUT", operation)
            .scope(assignment.scope)
            .extra(f"/{request_id}")
            .json({"properties": properties})
            .validate(check_error_response)
            .send()
        )
        logger.info(
            "role_request_submitted",
            extra={
                "request_type": request_type,
                "role": str(assignment.role),
                "scope": str(assignment.scope),
                "request_id": request_id,
            },
        )
        return request_id

    async def activate(
        self,
        assignment: RoleAssignment,
        justification: str,
        duration: timedelta | int,
    ) -> str:
        """Activate an eligible assignment for ``duration``.

        Raises:
            ValidationError: If ``duration`` is not positive. Nothing is sent.
        """
        formatted = format_duration(duration)
        return await self.submit_schedule_request(
            Operation.ROLE_ASSIGNMENT_SCHEDULE_REQUESTS,
            assignment,
            "SelfActivate",
            justification=justification,
            duration=formatted,
        )

    async def extend(
        self,
        assignment: RoleAssignment,
        justification: str,
        duration: timedelta | int,
    ) -> str:
        """Extend an active assignment by ``duration``."""
        formatted = format_duration(duration)
        return await self.submit_schedule_request(
            Operation.ROLE_ASSIGNMENT_SCHEDULE_REQUESTS,
            assignment,
            "SelfExtend",
            justification=justification,
            duration=formatted,
        )

    async def deactivate(self, assignment: RoleAssignment) -> str:
        return await self.submit_schedule_request(
            Operation.ROLE_ASSIGNMENT_SCHEDULE_REQUESTS,
            assignment,
            "SelfDeactivate",
        )

    async def activate_set(
        self,
        assignments: Iterable[RoleAssignment],
        justification: str,
        duration: timedelta | int,
        concurrency: int | None = None,
    ) -> None:
        """Activate every assignment in ``assignments``.

        Raises:
            NoRolesSpecifiedError: If ``assignments`` is empty.
            ValidationError: If ``duration`` is not positive.
            BatchOperationError: If any activation failed.
        """
        entries = sorted(set(assignments))
        if not entries:
            raise NoRolesSpecifiedError()
        format_duration(duration)
        await self._run_set(
            "activate",
            entries,
            lambda entry: self.activate(entry, justification, duration),
            concurrency,
        )

    async def deactivate_set(
        self,
        assignments: Iterable[RoleAssignment],
        concurrency: int | None = None,
    ) -> None:
        """Deactivate every assignment in ``assignments``.

        Raises:
            NoRolesSpecifiedError: If ``assignments`` is empty.
            BatchOperationError: If any deactivation failed.
        """
        entries = sorted(set(assignments))
        if not entries:
            raise NoRolesSpecifiedError()
        await self._run_set("deactivate", entries, self.deactivate, concurrency)

    def _worker_pool(self, concurrency: int) -> asyncio.Semaphore:
        if self._pool is None:
            self._pool = asyncio.Semaphore(concurrency)
            self._pool_size = concurrency
        elif concurrency != self._pool_size:
            logger.warning(
                "worker_pool_already_configured",
                extra={"requested": concurrency, "configured": self._pool_size},
            )
        return self._pool

    async def _run_set(
        self,
        action: str,
        entries: list[RoleAssignment],
        operation: Callable[[RoleAssignment], Awaitable[Any]],
        concurrency: int | None,
    ) -> None:
        pool = self._worker_pool(concurrency or self._settings.concurrency)

        async def run(entry: RoleAssignment) -> None:
            async with pool:
                await operation(entry)

        outcomes = await asyncio.gather(*(run(entry) for entry in entries), return_exceptions=True)

        failures: dict[RoleAssignment, Exception] = {}
        for entry, outcome in zip(entries, outcomes, strict=True):
            if isinstance(outcome, Exception):
                logger.warning(
                    "role_operation_failed",
                    extra={
                        "action": action,
                        "role": str(entry.role),
                        "scope": str(entry.scope),
                        "error": str(outcome),
                    },
                )
                failures[entry] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
        if failures:
            raise BatchOperationError(action, failures)

    async def wait_for_role_activation(
        self,
        assignments: Iterable[RoleAssignment],
        timeout: timedelta | float,
    ) -> None:
        """Wait until every assignment shows up as active.

        Active assignments are re-listed no more often than the configured
        ``poll_interval``.

        Raises:
            ActivationTimeoutError: If some assignments are still not
                active once ``timeout`` elapsed.
        """
        pending = set(assignments)
        if not pending:
            return

        timeout_seconds = _seconds(timeout)
        deadline = time.monotonic() + timeout_seconds
        last_check: float | None = None
        while True:
            if last_check is not None:
                delay = last_check + self._settings.poll_interval - time.monotonic()
                if delay > 0:
                    await asyncio.sleep(delay)
            last_check = time.monotonic()

            active = await self._list_active()
            pending = {entry for entry in pending if entry not in active}
            if not pending:
                logger.info("role_activation_complete")
                return
            if time.monotonic() >= deadline:
                raise ActivationTimeoutError(pending, timeout_seconds)
            logger.info("waiting_for_role_activation", extra={"pending": len(pending)})
