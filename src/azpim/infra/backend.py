"""Authenticated request execution against the control plane and Graph.

Every request the package issues goes through :meth:`Backend.retry_request`,
which applies one retry policy: each attempt is classified as success,
retryable failure (transport error, 429, 5xx) or fatal failure. Retryable
failures are retried with a fixed delay plus random jitter until the
attempt budget runs out.

Response validation is pluggable per call site. Without a validator a
non-2xx status is fatal; with one, the validator alone decides (see
:func:`check_error_response` for role activation requests).

Design decisions:
- One shared ``httpx.AsyncClient`` per backend. Callers own the backend's
  lifecycle and close it with :meth:`Backend.aclose` (or ``async with``).
- Bearer tokens are fetched at most once per :class:`TokenScope` per
  backend, behind a per-scope lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
    wait_random,
)

from azpim.domain.exceptions import (
    ParseError,
    PimError,
    RateLimitedError,
    RequestFailedError,
    RetriesExhaustedError,
    TransientRequestError,
)
from azpim.infra.settings import PimSettings, get_pim_settings
from azpim.infra.tokens import AzureCliTokenProvider, TokenProvider, TokenScope, extract_oid

if TYPE_CHECKING:
    from collections.abc import Callable

    from tenacity import RetryCallState

    from azpim.domain.scope import Scope

    ResponseValidator = Callable[[int, Any], None]

logger = logging.getLogger(__name__)

_COMMAND_NAME_HEADER = "X-Ms-Command-Name"
_COMMAND_NAME = "Microsoft_Azure_PIMCommon."


class Operation(StrEnum):
    """``Microsoft.Authorization`` operations used by the client."""

    ROLE_ASSIGNMENTS = "roleAssignments"
    ROLE_DEFINITIONS = "roleDefinitions"
    ROLE_ASSIGNMENT_SCHEDULE_INSTANCES = "roleAssignmentScheduleInstances"
    ROLE_ELIGIBILITY_SCHEDULE_INSTANCES = "roleEligibilityScheduleInstances"
    ROLE_ASSIGNMENT_SCHEDULE_REQUESTS = "roleAssignmentScheduleRequests"
    ROLE_ELIGIBILITY_SCHEDULE_REQUESTS = "roleEligibilityScheduleRequests"
    ELIGIBLE_CHILD_RESOURCES = "eligibleChildResources"

    @property
    def api_version(self) -> str:
        if self in (Operation.ROLE_ASSIGNMENTS, Operation.ROLE_DEFINITIONS):
            return "2022-04-01"
        return "2020-10-01"

    @property
    def token_scope(self) -> TokenScope:
        return TokenScope.MANAGEMENT


def check_error_response(status: int, body: Any) -> None:
    """Validate the response to a role schedule request.

    A 400 reporting ``RoleAssignmentExists`` or ``RoleAssignmentRequestExists``
    means the desired state is already true or already in flight, and is
    treated as success.

    Raises:
        RequestFailedError: For any other non-2xx status.
    """
    if 200 <= status < 300:
        return
    if status == httpx.codes.BAD_REQUEST:
        error = body.get("error") if isinstance(body, dict) else None
        code = error.get("code") if isinstance(error, dict) else None
        if code == "RoleAssignmentExists":
            logger.info("role_already_assigned")
            return
        if code == "RoleAssignmentRequestExists":
            logger.info("role_assignment_request_already_exists")
            return
    raise RequestFailedError(status, body)


def _endpoint(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


class Backend:
    """Authenticated, retrying HTTP executor.

    Args:
        token_provider: Source of bearer tokens. Defaults to the Azure CLI.
        settings: Client settings. Defaults to :func:`get_pim_settings`.
        client: Optional shared ``httpx.AsyncClient``. If omitted, one is
            created and closed by :meth:`aclose`.
    """

    def __init__(
        self,
        token_provider: TokenProvider | None = None,
        settings: PimSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings or get_pim_settings()
        self._token_provider = token_provider or AzureCliTokenProvider()
        self._external_client = client is not None
        self._client = client or httpx.AsyncClient(timeout=self._settings.request_timeout)
        self._tokens: dict[TokenScope, str] = {}
        self._token_locks: defaultdict[TokenScope, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._principal_id: str | None = None

    @property
    def settings(self) -> PimSettings:
        return self._settings

    async def get_token(self, scope: TokenScope) -> str:
        """Return the memoized bearer token for ``scope``, fetching it once."""
        async with self._token_locks[scope]:
            token = self._tokens.get(scope)
            if token is None:
                token = await self._token_provider.get_token(scope)
                self._tokens[scope] = token
            return token

    async def principal_id(self) -> str:
        """Object id of the signed-in principal, read from the management token."""
        if self._principal_id is None:
            token = await self.get_token(TokenScope.MANAGEMENT)
            self._principal_id = extract_oid(token)
        return self._principal_id

    def request(self, method: str, operation: Operation) -> RequestBuilder:
        return RequestBuilder(self, method, operation)

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        return self._client.build_request(method, url, **kwargs)

    async def graph_request(
        self,
        method: str,
        path: str | None = None,
        *,
        url: str | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request to the directory (Graph) API.

        Args:
            method: HTTP method.
            path: Path below the Graph base URL, e.g. ``/v1.0/groups/x/members``.
            url: Absolute URL (e.g. an ``@odata.nextLink``); overrides ``path``.
            json: Optional JSON body.
        """
        target = url or f"{self._settings.graph_url.rstrip('/')}{path or ''}"
        token = await self.get_token(TokenScope.GRAPH)
        request = self._client.build_request(
            method,
            target,
            headers={"Authorization": f"Bearer {token}"},
            json=json,
        )
        return await self.retry_request(request)

    async def retry_request(
        self,
        request: httpx.Request,
        validate: ResponseValidator | None = None,
    ) -> Any:
        """Execute ``request`` under the retry policy.

        Args:
            request: Fully built request; each attempt sends a fresh clone.
            validate: Optional ``(status, body)`` callable raising on failure.

        Returns:
            Decoded JSON body (``{}`` for an empty body).

        Raises:
            RetriesExhaustedError: If every attempt failed transiently.
            RequestFailedError: On a fatal HTTP failure.
            ParseError: If the body is not JSON.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._settings.retry_count),
            wait=wait_fixed(self._settings.retry_delay)
            + wait_random(0, self._settings.retry_jitter),
            retry=retry_if_exception(lambda exc: isinstance(exc, PimError) and exc.transient),
            before_sleep=self._log_retry,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(request, validate)
        except TransientRequestError as exc:
            raise RetriesExhaustedError(
                self._settings.retry_count,
                method=request.method,
                url=_endpoint(request),
            ) from exc
        raise RetriesExhaustedError(self._settings.retry_count)

    async def _attempt(self, request: httpx.Request, validate: ResponseValidator | None) -> Any:
        context = {"method": request.method, "url": _endpoint(request)}
        try:
            response = await self._client.send(self._clone(request))
        except httpx.TransportError as exc:
            raise TransientRequestError(f"transport failure: {exc}", context) from exc

        status = response.status_code
        logger.debug("request_completed", extra={**context, "status": status})
        if status == httpx.codes.TOO_MANY_REQUESTS:
            raise RateLimitedError("rate limited", context)
        if status >= 500:
            raise TransientRequestError(f"server error: {status}", context)

        body = self._decode(response)
        if validate is not None:
            validate(status, body)
            return body
        if response.is_success:
            return body
        raise RequestFailedError(status, body, **context)

    @staticmethod
    def _clone(request: httpx.Request) -> httpx.Request:
        return httpx.Request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.content,
        )

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise ParseError("unable to decode response body", response.text) from exc

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            "request_retry",
            extra={"attempt": retry_state.attempt_number, "error": str(error)},
        )

    async def aclose(self) -> None:
        """Close the internal httpx.AsyncClient if we own it."""
        if not self._external_client:
            await self._client.aclose()

    async def __aenter__(self) -> Backend:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class RequestBuilder:
    """Fluent builder for one ``Microsoft.Authorization`` request.

    Example:
        >>> body = await (
        ...     backend.request("GET", Operation.ROLE_DEFINITIONS)
        ...     .scope(scope)
        ...     .query("$filter", "atScope()")
        ...     .send()
        ... )
    """

    def __init__(self, backend: Backend, method: str, operation: Operation) -> None:
        self._backend = backend
        self._method = method
        self._operation = operation
        self._scope: Scope | None = None
        self._extra = ""
        self._query: list[tuple[str, str]] = []
        self._json: Any = None
        self._validate: ResponseValidator | None = None

    def scope(self, scope: Scope) -> RequestBuilder:
        self._scope = scope
        return self

    def extra(self, extra: str) -> RequestBuilder:
        self._extra = extra
        return self

    def query(self, key: str, value: str) -> RequestBuilder:
        self._query.append((key, value))
        return self

    def json(self, body: Any) -> RequestBuilder:
        self._json = body
        return self

    def validate(self, validator: ResponseValidator) -> RequestBuilder:
        self._validate = validator
        return self

    def url(self) -> str:
        base = self._backend.settings.management_url.rstrip("/")
        scope = str(self._scope) if self._scope is not None else ""
        return f"{base}{scope}/providers/Microsoft.Authorization/{self._operation}{self._extra}"

    async def send(self) -> Any:
        token = await self._backend.get_token(self._operation.token_scope)
        request = self._backend.build_request(
            self._method,
            self.url(),
            params=[("api-version", self._operation.api_version), *self._query],
            headers={
                "Authorization": f"Bearer {token}",
                _COMMAND_NAME_HEADER: _COMMAND_NAME,
            },
            json=self._json,
        )
        return await self._backend.retry_request(request, self._validate)
