"""Descendant resources the caller is eligible to act on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from azpim.domain.exceptions import ParseError, ScopeError
from azpim.domain.scope import Scope


@dataclass(frozen=True, order=True, slots=True)
class ChildResource:
    """An entry of an ``eligibleChildResources`` listing.

    Attributes:
        id: Scope of the child resource.
        name: Display name.
        type: Resource type (e.g. ``resourcegroup``).
    """

    id: Scope
    name: str
    type: str

    @classmethod
    def parse(cls, data: Any) -> set[ChildResource]:
        """Parse a listing body; a body without ``value`` yields no resources.

        Raises:
            ParseError: If an entry lacks a valid id, name or type.
        """
        values = data.get("value") if isinstance(data, dict) else None
        if not isinstance(values, list):
            return set()

        results: set[ChildResource] = set()
        for entry in values:
            if not isinstance(entry, dict):
                raise ParseError("invalid child resource", entry)
            name = entry.get("name")
            type_ = entry.get("type")
            if not isinstance(name, str) or not isinstance(type_, str):
                raise ParseError("invalid child resource", entry)
            try:
                scope = Scope(entry.get("id"))
            except ScopeError as exc:
                raise ParseError("invalid child resource", entry) from exc
            results.add(cls(id=scope, name=name, type=type_))
        return results
