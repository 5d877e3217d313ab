"""Tests for the Scope value object."""

from __future__ import annotations

from uuid import UUID

import pytest

from azpim.domain.exceptions import ScopeError, ValidationError
from azpim.domain.scope import Scope

SUB_ID = UUID("00000000-0000-0000-0000-000000000001")
SUB = f"/subscriptions/{SUB_ID}"


@pytest.mark.unit
class TestScopeConstruction:
    def test_valid_scope(self) -> None:
        assert str(Scope(SUB)) == SUB

    def test_missing_leading_slash_raises(self) -> None:
        with pytest.raises(ScopeError, match="scope must start with a /") as exc_info:
            Scope("subscriptions/abc")
        assert exc_info.value.error_code == "LEADING_SLASH"
        assert exc_info.value.value == "subscriptions/abc"

    def test_empty_string_raises(self) -> None:
        with pytest.raises(ScopeError):
            Scope("")

    def test_from_subscription(self) -> None:
        assert Scope.from_subscription(SUB_ID) == Scope(SUB)

    def test_from_resource_group(self) -> None:
        assert Scope.from_resource_group(SUB_ID, "rg").value == f"{SUB}/resourceGroups/rg"

    def test_from_provider(self) -> None:
        scope = Scope.from_provider(SUB_ID, "rg", "Microsoft.Storage/storageAccounts/acct")
        assert scope.value == (
            f"{SUB}/resourceGroups/rg/providers/Microsoft.Storage/storageAccounts/acct"
        )

    def test_scopes_sort_by_path(self) -> None:
        scopes = sorted([Scope("/b"), Scope("/a/c"), Scope("/a")])
        assert [s.value for s in scopes] == ["/a", "/a/c", "/b"]


@pytest.mark.unit
class TestScopeBuild:
    def test_nothing_given_returns_none(self) -> None:
        assert Scope.build() is None

    def test_subscription_only(self) -> None:
        assert Scope.build(subscription=SUB_ID) == Scope(SUB)

    def test_resource_group(self) -> None:
        assert Scope.build(subscription=SUB_ID, resource_group="rg") == Scope(
            f"{SUB}/resourceGroups/rg"
        )

    def test_full_scope_string(self) -> None:
        assert Scope.build(scope="/providers/x") == Scope("/providers/x")

    def test_provider_requires_resource_group(self) -> None:
        with pytest.raises(ValidationError, match="provider requires resource_group"):
            Scope.build(subscription=SUB_ID, provider="p")

    def test_resource_group_requires_subscription(self) -> None:
        with pytest.raises(ValidationError, match="resource_group requires subscription"):
            Scope.build(resource_group="rg")

    def test_scope_excludes_parts(self) -> None:
        with pytest.raises(ValidationError):
            Scope.build(subscription=SUB_ID, scope=SUB)


@pytest.mark.unit
class TestScopeQueries:
    def test_is_subscription(self) -> None:
        assert Scope(SUB).is_subscription()

    def test_resource_group_is_not_subscription(self) -> None:
        assert not Scope(f"{SUB}/resourceGroups/rg").is_subscription()

    def test_root_is_not_subscription(self) -> None:
        assert not Scope("/").is_subscription()

    def test_subscription_extracted(self) -> None:
        assert Scope(f"{SUB}/resourceGroups/rg").subscription() == SUB_ID

    def test_subscription_not_uuid(self) -> None:
        assert Scope("/subscriptions/not-a-uuid").subscription() is None

    def test_subscription_absent(self) -> None:
        assert Scope("/providers/Microsoft.Management/managementGroups/mg").subscription() is None


@pytest.mark.unit
class TestScopeContains:
    def test_contains_itself(self) -> None:
        scope = Scope(SUB)
        assert scope.contains(scope)

    def test_contains_descendant(self) -> None:
        assert Scope(SUB).contains(Scope(f"{SUB}/resourceGroups/rg"))

    def test_descendant_does_not_contain_ancestor(self) -> None:
        assert not Scope(f"{SUB}/resourceGroups/rg").contains(Scope(SUB))

    def test_segment_prefix_not_string_prefix(self) -> None:
        assert not Scope(f"{SUB}/resourceGroups/rg").contains(
            Scope(f"{SUB}/resourceGroups/rg2")
        )

    def test_siblings(self) -> None:
        assert not Scope("/a/b").contains(Scope("/a/c"))
