"""Shared fixtures: scripted Azure endpoints, fake tokens and fast settings."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import jwt as pyjwt
import pytest

from azpim.application.client import PimClient
from azpim.infra.backend import Backend
from azpim.infra.settings import PimSettings, get_pim_settings
from azpim.infra.tokens import TokenScope

PRINCIPAL_ID = "11111111-1111-1111-1111-111111111111"
SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"

Reply = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class FakeTokenProvider:
    """In-memory token provider; the management token carries an ``oid`` claim."""

    def __init__(self, principal_id: str = PRINCIPAL_ID) -> None:
        self.principal_id = principal_id
        self.calls: list[TokenScope] = []

    async def get_token(self, scope: TokenScope) -> str:
        self.calls.append(scope)
        if scope is TokenScope.MANAGEMENT:
            return pyjwt.encode({"oid": self.principal_id}, SIGNING_KEY, algorithm="HS256")
        return "graph-token"


class FakeAzure:
    """``httpx.MockTransport`` handler answering scripted replies by method and path.

    Replies queued for a route are consumed in order; the last one keeps
    answering. Unscripted routes answer 404.
    """

    def __init__(self) -> None:
        self._routes: list[tuple[str, str, bool, list[Reply]]] = []
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *replies: Reply, prefix: bool = False) -> None:
        self._routes.append((method, path, prefix, list(replies)))

    def json(
        self,
        method: str,
        path: str,
        body: Any,
        status: int = 200,
        prefix: bool = False,
    ) -> None:
        self.add(method, path, lambda _: httpx.Response(status, json=body), prefix=prefix)

    def calls(self, method: str, path: str, prefix: bool = False) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method
            and (
                request.url.path.startswith(path) if prefix else request.url.path == path
            )
        ]

    def _match(self, request: httpx.Request) -> list[Reply] | None:
        for method, path, prefix, replies in self._routes:
            if method == request.method and not prefix and request.url.path == path:
                return replies
        for method, path, prefix, replies in self._routes:
            if method == request.method and prefix and request.url.path.startswith(path):
                return replies
        return None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self._match(request)
        if not replies:
            return httpx.Response(404, json={"error": {"code": "NotScripted"}})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return reply(request)

    @staticmethod
    def instance(
        role: str,
        scope: str,
        scope_name: str,
        principal_id: str | None = None,
        principal_type: str = "User",
        role_definition_id: str | None = None,
    ) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "roleDefinitionId": role_definition_id
            or f"{scope}/providers/Microsoft.Authorization/roleDefinitions/{role.lower()}",
            "expandedProperties": {
                "roleDefinition": {"displayName": role},
                "scope": {"id": scope, "displayName": scope_name},
            },
        }
        if principal_id is not None:
            properties["principalId"] = principal_id
            properties["principalType"] = principal_type
        return {"properties": properties}

    @staticmethod
    def directory_object(
        object_id: str,
        display_name: str,
        odata_type: str = "#microsoft.graph.user",
        upn: str | None = None,
    ) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": object_id,
            "displayName": display_name,
            "@odata.type": odata_type,
        }
        if upn is not None:
            data["userPrincipalName"] = upn
        return data

    @staticmethod
    def listing(*entries: dict[str, Any]) -> dict[str, Any]:
        return {"value": list(entries)}


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> None:
    get_pim_settings.cache_clear()


@pytest.fixture()
def settings() -> PimSettings:
    """Settings with instant retries and millisecond polling."""
    return PimSettings(
        _env_file=None,
        retry_count=3,
        retry_delay=0,
        retry_jitter=0,
        poll_interval=0.01,
        cache_ttl=60,
        concurrency=2,
    )


@pytest.fixture()
def azure() -> FakeAzure:
    return FakeAzure()


@pytest.fixture()
def tokens() -> FakeTokenProvider:
    return FakeTokenProvider()


@pytest.fixture()
def http_client(azure: FakeAzure) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(azure))


@pytest.fixture()
def backend(
    tokens: FakeTokenProvider, settings: PimSettings, http_client: httpx.AsyncClient
) -> Backend:
    return Backend(tokens, settings, http_client)


@pytest.fixture()
def pim(backend: Backend, settings: PimSettings) -> PimClient:
    return PimClient(settings=settings, backend=backend)
