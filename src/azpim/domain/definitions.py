"""Role definition metadata."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Permission(_CamelModel):
    actions: list[str] | None = None
    not_actions: list[str] | None = None
    data_actions: list[str] | None = None
    not_data_actions: list[str] | None = None


class DefinitionProperties(_CamelModel):
    role_name: str
    description: str = ""
    type: str = ""
    permissions: list[Permission] = []
    assignable_scopes: list[str] = []


class Definition(BaseModel):
    """A role definition as returned for a scope.

    Immutable once fetched; cached per scope by the client.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    type: str = ""
    properties: DefinitionProperties


class Definitions(BaseModel):
    """Envelope of a ``roleDefinitions`` listing."""

    model_config = ConfigDict(extra="ignore")

    value: list[Definition]
