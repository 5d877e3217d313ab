"""Who-has-what reports for a scope.

A report flattens eligible or active assignments into one row per
principal and role. Group grants can be expanded so that every (nested)
member appears with ``via_group`` set to the granting group's name.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import total_ordering
from typing import TYPE_CHECKING, Any

from azpim.application.client import ListFilter
from azpim.domain.objects import ObjectType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from azpim.application.client import PimClient
    from azpim.domain.objects import Object
    from azpim.domain.scope import Scope

logger = logging.getLogger(__name__)


@total_ordering
@dataclass(frozen=True)
class RoleReportEntry:
    """One principal holding one role at one scope."""

    role: str
    scope: Scope
    id: str
    display_name: str
    object_type: ObjectType
    upn: str | None = None
    via_group: str | None = None

    def _sort_key(self) -> tuple[str, ...]:
        return (
            self.role,
            self.scope.value,
            self.id,
            self.display_name,
            self.upn or "",
            str(self.object_type),
            self.via_group or "",
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RoleReportEntry):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    @classmethod
    def from_object(
        cls,
        role: str,
        scope: Scope,
        obj: Object,
        via_group: str | None = None,
    ) -> RoleReportEntry:
        return cls(
            role=role,
            scope=scope,
            id=obj.id,
            display_name=obj.display_name,
            object_type=obj.object_type,
            upn=obj.upn,
            via_group=via_group,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": self.role,
            "scope": str(self.scope),
            "id": self.id,
            "display_name": self.display_name,
        }
        if self.upn is not None:
            data["upn"] = self.upn
        data["object_type"] = str(self.object_type)
        if self.via_group is not None:
            data["via_group"] = self.via_group
        return data


def remove_dominated(entries: Iterable[RoleReportEntry]) -> list[RoleReportEntry]:
    """Drop entries implied by the same principal holding the same role higher up.

    An entry is dominated when another entry for the same principal id and
    role sits at a strict ancestor of its scope.
    """
    unique = sorted(set(entries))
    return [
        entry
        for entry in unique
        if not any(
            other.id == entry.id
            and other.role == entry.role
            and other.scope != entry.scope
            and other.scope.contains(entry.scope)
            for other in unique
        )
    ]


async def build_role_report(
    client: PimClient,
    scope: Scope,
    nested: bool = False,
    active: bool = False,
    expand: bool = False,
) -> list[RoleReportEntry]:
    """List who holds which role at ``scope``.

    Args:
        client: PIM client.
        scope: Root scope of the report.
        nested: Include eligible child scopes.
        active: Report active assignments instead of eligible ones.
        expand: Expand groups into their transitive members.

    Returns:
        Sorted entries with dominated ones removed. Assignments whose
        principal does not resolve are left out.
    """
    scopes = {scope}
    if nested:
        scopes.update(child.id for child in await client.eligible_child_resources(scope))

    listing = (
        client.list_active_role_assignments if active else client.list_eligible_role_assignments
    )
    listings = await asyncio.gather(
        *(listing(current, ListFilter.AT_SCOPE) for current in sorted(scopes))
    )

    results: set[RoleReportEntry] = set()
    for assignments in listings:
        for assignment in assignments:
            if assignment.object is None:
                continue
            results.add(
                RoleReportEntry.from_object(str(assignment.role), assignment.scope, assignment.object)
            )

    if expand:
        groups = [entry for entry in results if entry.object_type is ObjectType.GROUP]
        for entry in sorted(groups):
            for member in await client.group_members(entry.id, nested=True):
                results.add(
                    RoleReportEntry.from_object(
                        entry.role, entry.scope, member, via_group=entry.display_name
                    )
                )

    report = remove_dominated(results)
    logger.debug("role_report_built", extra={"scope": str(scope), "entries": len(report)})
    return report
