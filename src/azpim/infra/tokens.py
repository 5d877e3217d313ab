"""Bearer token acquisition.

The request backend treats credentials as an opaque :class:`TokenProvider`
returning a bearer token string for a :class:`TokenScope`. The default
implementation shells out to the Azure CLI, reusing whatever login the
operator already has.

Example:
    >>> from azpim.infra.tokens import TokenProvider, TokenScope
    >>> class StaticTokens:
    ...     async def get_token(self, scope: TokenScope) -> str:
    ...         return "token"
    >>> isinstance(StaticTokens(), TokenProvider)
    True
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import Protocol, runtime_checkable

import jwt as pyjwt

from azpim.domain.exceptions import TokenError

logger = logging.getLogger(__name__)


class TokenScope(StrEnum):
    """OAuth scope a token is requested for."""

    MANAGEMENT = "https://management.core.windows.net/.default"
    GRAPH = "https://graph.microsoft.com/.default"


@runtime_checkable
class TokenProvider(Protocol):
    """Port for obtaining bearer tokens."""

    async def get_token(self, scope: TokenScope) -> str:
        """Return a bearer token valid for ``scope``.

        Raises:
            TokenError: If no token can be obtained.
        """
        ...


class AzureCliTokenProvider:
    """Token provider backed by ``az account get-access-token``.

    Args:
        executable: Azure CLI executable name or path.
    """

    def __init__(self, executable: str = "az") -> None:
        self._executable = executable

    async def get_token(self, scope: TokenScope) -> str:
        args = [
            "account",
            "get-access-token",
            f"--scope={scope.value}",
            "--query",
            "accessToken",
            "--output",
            "tsv",
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                self._executable,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TokenError(
                "unable to run the Azure CLI", {"executable": self._executable}
            ) from exc

        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise TokenError(
                "Azure CLI failed to issue a token",
                {
                    "scope": scope.value,
                    "returncode": process.returncode,
                    "stderr": stderr.decode(errors="replace").strip(),
                },
            )

        token = stdout.decode().strip()
        if not token:
            raise TokenError("Azure CLI returned an empty token", {"scope": scope.value})
        logger.debug("token_acquired", extra={"scope": scope.value})
        return token


def extract_oid(token: str) -> str:
    """Read the ``oid`` (object id) claim from a bearer token.

    The signature is not verified: the token came from the local
    credential provider and is only inspected to learn who we are.

    Raises:
        TokenError: If the token cannot be decoded or has no ``oid``.
    """
    try:
        claims = pyjwt.decode(token, options={"verify_signature": False})
    except pyjwt.DecodeError as exc:
        raise TokenError("unable to decode bearer token") from exc

    oid = claims.get("oid")
    if not isinstance(oid, str) or not oid:
        raise TokenError("bearer token has no oid claim")
    return oid
