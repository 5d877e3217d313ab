"""Scope value object for hierarchical resource paths.

A scope identifies a subscription, resource group, provider or arbitrary
resource, e.g. ``/subscriptions/<uuid>/resourceGroups/rg``. Containment is a
pure structural prefix test on the ``/``-separated segments, not an ACL
evaluation.

Example:
    >>> sub = Scope("/subscriptions/00000000-0000-0000-0000-000000000000")
    >>> sub.contains(Scope(f"{sub}/resourceGroups/rg"))
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from azpim.domain.exceptions import ScopeError, ValidationError


@dataclass(frozen=True, order=True, slots=True)
class Scope:
    """Hierarchical resource path.

    Attributes:
        value: Path string, always starting with ``/``.

    Raises:
        ScopeError: If value does not start with ``/``.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str) or not self.value.startswith("/"):
            raise ScopeError(str(self.value))

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_subscription(cls, subscription_id: UUID) -> Scope:
        return cls(f"/subscriptions/{subscription_id}")

    @classmethod
    def from_resource_group(cls, subscription_id: UUID, resource_group: str) -> Scope:
        return cls(f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}")

    @classmethod
    def from_provider(cls, subscription_id: UUID, resource_group: str, provider: str) -> Scope:
        return cls(
            f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}/providers/{provider}"
        )

    @classmethod
    def build(
        cls,
        subscription: UUID | None = None,
        resource_group: str | None = None,
        provider: str | None = None,
        scope: Scope | str | None = None,
    ) -> Scope | None:
        """Build a scope from its parts.

        A provider requires a resource group, which requires a subscription.
        A full ``scope`` cannot be combined with any of the parts.

        Returns:
            The built scope, or ``None`` when nothing was given.

        Raises:
            ValidationError: On an invalid combination of arguments.
        """
        if scope is not None:
            if subscription is not None or resource_group is not None or provider is not None:
                raise ValidationError("scope cannot be combined with subscription")
            return scope if isinstance(scope, Scope) else cls(scope)
        if provider is not None and resource_group is None:
            raise ValidationError("provider requires resource_group")
        if resource_group is not None and subscription is None:
            raise ValidationError("resource_group requires subscription")
        if subscription is None:
            return None
        if resource_group is None:
            return cls.from_subscription(subscription)
        if provider is None:
            return cls.from_resource_group(subscription, resource_group)
        return cls.from_provider(subscription, resource_group, provider)

    def is_subscription(self) -> bool:
        """True iff this is exactly a subscription scope."""
        parts = self.value.split("/")
        return len(parts) == 3 and parts[1] == "subscriptions" and bool(parts[2])

    def subscription(self) -> UUID | None:
        """Extract the subscription id when the path starts ``/subscriptions/<uuid>``."""
        parts = self.value.split("/")
        if len(parts) < 3 or parts[1] != "subscriptions":
            return None
        try:
            return UUID(parts[2])
        except ValueError:
            return None

    def contains(self, other: Scope) -> bool:
        """True iff ``self`` is an ancestor of, or equal to, ``other``."""
        first = self.value.split("/")
        second = other.value.split("/")
        return second[: len(first)] == first
