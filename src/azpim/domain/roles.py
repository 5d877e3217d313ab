"""Role assignment value objects.

A :class:`RoleAssignment` is a potential (eligible) or active time-bound
grant of a role at a scope. Assignments are immutable; the directory object
behind an assignment is attached by producing a new value with
:meth:`RoleAssignment.with_object`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from functools import total_ordering
from typing import TYPE_CHECKING, Any

from azpim.domain.exceptions import ParseError, ScopeError
from azpim.domain.scope import Scope

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from azpim.domain.objects import Object


@dataclass(frozen=True, order=True, slots=True)
class Role:
    """Case-preserved role name, e.g. ``Owner``.

    Equality is case-sensitive; call sites that accept user input compare
    with :meth:`matches`.
    """

    value: str

    def __str__(self) -> str:
        return self.value

    def matches(self, other: Role | str) -> bool:
        return self.value.lower() == str(other).lower()


@total_ordering
@dataclass(frozen=True)
class RoleAssignment:
    """A time-bound grant of ``role`` at ``scope``.

    Ordered by role, then scope, then scope name, so assignments can be
    kept in sorted sets and deduplicated. The resolved ``object`` does not
    take part in equality.

    Attributes:
        role: Role name.
        scope: Scope the role applies to.
        scope_name: Display name of the scope.
        role_definition_id: Full role definition id, required for
            activation and deactivation requests.
        principal_id: Principal holding the grant (only for scope listings).
        principal_type: ``User``, ``Group`` or ``ServicePrincipal``.
        object: Directory object resolved from ``principal_id``.
    """

    role: Role
    scope: Scope
    scope_name: str
    role_definition_id: str
    principal_id: str | None = None
    principal_type: str | None = None
    object: Object | None = field(default=None, compare=False)

    def _sort_key(self) -> tuple[str, ...]:
        return (
            self.role.value,
            self.scope.value,
            self.scope_name,
            self.role_definition_id,
            self.principal_id or "",
            self.principal_type or "",
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, RoleAssignment):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def with_object(self, obj: Object | None) -> RoleAssignment:
        return replace(self, object=obj)

    def friendly(self) -> str:
        return f'"{self.role}" in "{self.scope_name}" ({self.scope})'

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "role": str(self.role),
            "scope": str(self.scope),
            "scope_name": self.scope_name,
        }
        if self.principal_id is not None:
            data["principal_id"] = self.principal_id
        if self.principal_type is not None:
            data["principal_type"] = self.principal_type
        if self.object is not None:
            data["object"] = self.object.to_dict()
        return data


def _dig(value: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


class RoleAssignments:
    """Sorted set of :class:`RoleAssignment` values."""

    def __init__(self, entries: Iterable[RoleAssignment] = ()) -> None:
        self._entries: set[RoleAssignment] = set(entries)

    def __iter__(self) -> Iterator[RoleAssignment]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry: object) -> bool:
        return entry in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RoleAssignments):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"RoleAssignments({sorted(self._entries)!r})"

    def add(self, entry: RoleAssignment) -> bool:
        """Insert ``entry``; returns False if it was already present."""
        if entry in self._entries:
            return False
        self._entries.add(entry)
        return True

    def update(self, entries: Iterable[RoleAssignment]) -> None:
        self._entries.update(entries)

    def discard(self, entry: RoleAssignment) -> None:
        self._entries.discard(entry)

    def retain(self, predicate: Callable[[RoleAssignment], bool]) -> None:
        self._entries = {entry for entry in self._entries if predicate(entry)}

    def is_empty(self) -> bool:
        return not self._entries

    def find(self, role: Role | str, scope: Scope | str) -> RoleAssignment | None:
        """Find an assignment by role and scope, case-insensitively.

        ``scope`` is matched against the scope path first and then
        against the scope display name.
        """
        wanted = str(scope).lower()
        candidates = [entry for entry in self if entry.role.matches(role)]
        for entry in candidates:
            if entry.scope.value.lower() == wanted:
                return entry
        for entry in candidates:
            if entry.scope_name.lower() == wanted:
                return entry
        return None

    def friendly(self) -> str:
        return "\n".join(f"* {entry.friendly()}" for entry in self)

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self]

    @classmethod
    def parse(cls, body: Any, with_principal: bool) -> RoleAssignments:
        """Parse a schedule-instance listing.

        Args:
            body: Decoded JSON of a ``role*ScheduleInstances`` response.
            with_principal: Keep ``principalId`` / ``principalType``. Only
                meaningful for scope listings; listings of the current
                principal leave them unset so entries compare equal across
                eligible and active listings.

        Raises:
            ParseError: If the ``value`` array or a required field is missing.
        """
        values = _dig(body, "value")
        if not isinstance(values, list):
            raise ParseError("unable to parse response: missing value array", body)

        results = cls()
        for entry in values:
            role = _dig(entry, "properties", "expandedProperties", "roleDefinition", "displayName")
            if not isinstance(role, str):
                raise ParseError("no role name", entry)

            scope_id = _dig(entry, "properties", "expandedProperties", "scope", "id")
            try:
                scope = Scope(scope_id)
            except ScopeError as exc:
                raise ParseError("no scope id", entry) from exc

            scope_name = _dig(entry, "properties", "expandedProperties", "scope", "displayName")
            if not isinstance(scope_name, str):
                raise ParseError("no scope name", entry)

            role_definition_id = _dig(entry, "properties", "roleDefinitionId")
            if not isinstance(role_definition_id, str):
                raise ParseError("no role definition id", entry)

            principal_id = principal_type = None
            if with_principal:
                principal_id = _dig(entry, "properties", "principalId")
                principal_type = _dig(entry, "properties", "principalType")

            results.add(
                RoleAssignment(
                    role=Role(role),
                    scope=scope,
                    scope_name=scope_name,
                    role_definition_id=role_definition_id,
                    principal_id=principal_id,
                    principal_type=principal_type,
                )
            )
        return results
