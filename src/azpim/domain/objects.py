"""Directory principals resolved from the Graph API."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from azpim.domain.exceptions import ParseError


class ObjectType(StrEnum):
    """Kind of directory principal."""

    USER = "User"
    GROUP = "Group"
    SERVICE_PRINCIPAL = "ServicePrincipal"

    @classmethod
    def from_odata_type(cls, value: Any) -> ObjectType:
        """Map an ``@odata.type`` value to an ObjectType.

        Raises:
            ParseError: If the type is not a user, group or service principal.
        """
        mapping = {
            "#microsoft.graph.user": cls.USER,
            "#microsoft.graph.group": cls.GROUP,
            "#microsoft.graph.serviceprincipal": cls.SERVICE_PRINCIPAL,
        }
        if isinstance(value, str) and value.lower() in mapping:
            return mapping[value.lower()]
        raise ParseError("unknown object type", value)


@dataclass(frozen=True, order=True, slots=True)
class Object:
    """A resolved directory principal.

    Attributes:
        id: Directory object id.
        display_name: Display name (may be empty).
        upn: User principal name, users only.
        object_type: User, Group or ServicePrincipal.
    """

    id: str
    display_name: str
    object_type: ObjectType
    upn: str | None = field(default=None, compare=False)

    @classmethod
    def parse(cls, value: Any) -> Object:
        """Build an Object from one entry of a Graph ``value`` array.

        Raises:
            ParseError: If ``id`` is missing or the ``@odata.type`` is unknown.
        """
        if not isinstance(value, dict) or not isinstance(value.get("id"), str):
            raise ParseError("directory object without id", value)
        upn = value.get("userPrincipalName")
        return cls(
            id=value["id"],
            display_name=value.get("displayName") or "",
            object_type=ObjectType.from_odata_type(value.get("@odata.type")),
            upn=upn if isinstance(upn, str) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "display_name": self.display_name,
            "object_type": str(self.object_type),
        }
        if self.upn is not None:
            data["upn"] = self.upn
        return data
