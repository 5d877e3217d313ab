"""Plain (non-PIM) ARM role assignments.

Distinct from :class:`~azpim.domain.roles.RoleAssignment`: these are the
standing grants returned by ``Microsoft.Authorization/roleAssignments``.
Unrelated response fields are ignored.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from azpim.domain.exceptions import ScopeError
from azpim.domain.objects import Object
from azpim.domain.scope import Scope


class AssignmentProperties(BaseModel):
    """``properties`` block of an ARM role assignment."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        extra="ignore",
    )

    role_definition_id: str
    principal_id: str
    principal_type: str
    scope: Scope
    condition: str | None = None
    condition_version: str | None = None
    created_on: str | None = None
    created_by: str | None = None
    updated_on: str | None = None
    updated_by: str | None = None
    description: str | None = None
    delegated_managed_identity_resource_id: str | None = None

    @field_validator("scope", mode="before")
    @classmethod
    def parse_scope(cls, v: Any) -> Scope:
        if isinstance(v, Scope):
            return v
        try:
            return Scope(v)
        except ScopeError as exc:
            raise ValueError(exc.message) from exc


class Assignment(BaseModel):
    """A plain ARM role assignment.

    Attributes:
        id: Full resource id of the assignment.
        name: Assignment name (a GUID).
        type: Resource type, ``Microsoft.Authorization/roleAssignments``.
        properties: Assignment details.
        object: Directory object resolved from ``principal_id``, attached
            after listing.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, extra="ignore")

    id: str
    name: str
    type: str = ""
    properties: AssignmentProperties
    object: Object | None = Field(default=None, exclude=True)


class Assignments(BaseModel):
    """Envelope of a ``roleAssignments`` listing."""

    model_config = ConfigDict(extra="ignore")

    value: list[Assignment]
