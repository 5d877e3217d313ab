"""Tests for role reports and dominance removal."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import httpx
import pytest

from azpim.application.report import RoleReportEntry, build_role_report, remove_dominated
from azpim.domain.objects import ObjectType
from azpim.domain.scope import Scope

if TYPE_CHECKING:
    from conftest import FakeAzure

    from azpim.application.client import PimClient

SUB = "/subscriptions/00000000-0000-0000-0000-000000000001"
RG = f"{SUB}/resourceGroups/rg"
AUTH = "/providers/Microsoft.Authorization"
GET_BY_IDS = "/v1.0/directoryObjects/getByIds"

OBJECTS = {
    "u1": ("Alice", "#microsoft.graph.user"),
    "g1": ("Admins", "#microsoft.graph.group"),
}


def _directory(request: httpx.Request) -> httpx.Response:
    ids = json.loads(request.content)["ids"]
    value = [
        {"id": i, "displayName": OBJECTS[i][0], "@odata.type": OBJECTS[i][1]}
        for i in ids
        if i in OBJECTS
    ]
    return httpx.Response(200, json={"value": value})


def _entry(role: str, scope: str, object_id: str = "u1", via: str | None = None) -> RoleReportEntry:
    return RoleReportEntry(
        role=role,
        scope=Scope(scope),
        id=object_id,
        display_name="x",
        object_type=ObjectType.USER,
        via_group=via,
    )


@pytest.mark.unit
class TestRemoveDominated:
    def test_ancestor_entry_survives(self) -> None:
        assert remove_dominated([_entry("Owner", RG), _entry("Owner", SUB)]) == [
            _entry("Owner", SUB)
        ]

    def test_different_role_kept(self) -> None:
        entries = [_entry("Owner", SUB), _entry("Reader", RG)]
        assert remove_dominated(entries) == sorted(entries)

    def test_different_principal_kept(self) -> None:
        entries = [_entry("Owner", SUB, "u1"), _entry("Owner", RG, "u2")]
        assert remove_dominated(entries) == sorted(entries)

    def test_same_scope_duplicates_collapse(self) -> None:
        assert remove_dominated([_entry("Owner", SUB), _entry("Owner", SUB)]) == [
            _entry("Owner", SUB)
        ]


@pytest.mark.unit
class TestRoleReportEntry:
    def test_to_dict_omits_empty_optionals(self) -> None:
        assert _entry("Owner", SUB).to_dict() == {
            "role": "Owner",
            "scope": SUB,
            "id": "u1",
            "display_name": "x",
            "object_type": "User",
        }

    def test_to_dict_with_via_group(self) -> None:
        assert _entry("Owner", SUB, via="Admins").to_dict()["via_group"] == "Admins"


@pytest.mark.unit
class TestBuildRoleReport:
    @pytest.fixture()
    def scripted(self, azure: FakeAzure) -> FakeAzure:
        azure.json(
            "GET",
            f"{SUB}{AUTH}/roleEligibilityScheduleInstances",
            azure.listing(
                azure.instance("Owner", SUB, "Sub One", principal_id="u1"),
                azure.instance("Contributor", SUB, "Sub One", principal_id="g1", principal_type="Group"),
                azure.instance("Reader", SUB, "Sub One", principal_id="deleted"),
            ),
        )
        azure.json(
            "GET",
            f"{RG}{AUTH}/roleEligibilityScheduleInstances",
            azure.listing(azure.instance("Owner", RG, "rg", principal_id="u1")),
        )
        azure.json(
            "GET",
            f"{SUB}{AUTH}/eligibleChildResources",
            {"value": [{"id": RG, "name": "rg", "type": "resourcegroup"}]},
        )
        azure.add("POST", GET_BY_IDS, _directory)
        azure.json(
            "GET",
            "/v1.0/groups/g1/members",
            azure.listing(azure.directory_object("u2", "Bob", upn="bob@example.com")),
        )
        return azure

    @pytest.mark.asyncio
    async def test_resolved_entries_only(self, pim: PimClient, scripted: FakeAzure) -> None:
        report = await build_role_report(pim, Scope(SUB))

        assert [(e.role, e.id) for e in report] == [("Contributor", "g1"), ("Owner", "u1")]

    @pytest.mark.asyncio
    async def test_nested_removes_dominated(self, pim: PimClient, scripted: FakeAzure) -> None:
        report = await build_role_report(pim, Scope(SUB), nested=True)

        owners = [e for e in report if e.role == "Owner"]
        assert [e.scope for e in owners] == [Scope(SUB)]
        assert len(scripted.calls("GET", f"{RG}{AUTH}/roleEligibilityScheduleInstances")) == 1

    @pytest.mark.asyncio
    async def test_nested_resolves_each_principal_once(
        self, pim: PimClient, scripted: FakeAzure
    ) -> None:
        await build_role_report(pim, Scope(SUB), nested=True)

        requested = [
            i for r in scripted.calls("POST", GET_BY_IDS) for i in json.loads(r.content)["ids"]
        ]
        assert sorted(requested) == sorted(set(requested))
        assert "u1" in requested

    @pytest.mark.asyncio
    async def test_expand_groups(self, pim: PimClient, scripted: FakeAzure) -> None:
        report = await build_role_report(pim, Scope(SUB), expand=True)

        (member,) = [e for e in report if e.id == "u2"]
        assert member.role == "Contributor"
        assert member.via_group == "Admins"
        assert member.upn == "bob@example.com"

    @pytest.mark.asyncio
    async def test_active_listing(self, pim: PimClient, azure: FakeAzure) -> None:
        azure.json("GET", f"{SUB}{AUTH}/roleAssignmentScheduleInstances", {"value": []})

        assert await build_role_report(pim, Scope(SUB), active=True) == []
        assert len(azure.calls("GET", f"{SUB}{AUTH}/roleAssignmentScheduleInstances")) == 1
