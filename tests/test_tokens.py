"""Tests for token providers and oid extraction."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import jwt as pyjwt
import pytest

from azpim.domain.exceptions import TokenError
from azpim.infra.tokens import AzureCliTokenProvider, TokenProvider, TokenScope, extract_oid

KEY = "test-signing-key-that-is-long-enough-for-hs256"


def _process(returncode: int, stdout: bytes, stderr: bytes = b"") -> MagicMock:
    process = MagicMock()
    process.returncode = returncode
    process.communicate = AsyncMock(return_value=(stdout, stderr))
    return process


@pytest.mark.unit
class TestExtractOid:
    def test_reads_oid_claim(self) -> None:
        token = pyjwt.encode({"oid": "abc", "exp": 1}, KEY, algorithm="HS256")
        assert extract_oid(token) == "abc"

    def test_missing_oid(self) -> None:
        token = pyjwt.encode({"sub": "abc"}, KEY, algorithm="HS256")
        with pytest.raises(TokenError, match="no oid claim"):
            extract_oid(token)

    def test_garbage_token(self) -> None:
        with pytest.raises(TokenError, match="unable to decode bearer token"):
            extract_oid("not-a-jwt")


@pytest.mark.unit
class TestAzureCliTokenProvider:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(AzureCliTokenProvider(), TokenProvider)

    @pytest.mark.asyncio
    async def test_returns_stripped_token(self) -> None:
        exec_mock = AsyncMock(return_value=_process(0, b"token-value\n"))
        with patch("asyncio.create_subprocess_exec", exec_mock):
            token = await AzureCliTokenProvider().get_token(TokenScope.GRAPH)
        assert token == "token-value"
        args: Any = exec_mock.call_args.args
        assert args[0] == "az"
        assert f"--scope={TokenScope.GRAPH.value}" in args

    @pytest.mark.asyncio
    async def test_nonzero_exit(self) -> None:
        exec_mock = AsyncMock(return_value=_process(1, b"", b"Please run 'az login'"))
        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(TokenError) as exc_info:
                await AzureCliTokenProvider().get_token(TokenScope.MANAGEMENT)
        assert exc_info.value.context["stderr"] == "Please run 'az login'"

    @pytest.mark.asyncio
    async def test_empty_output(self) -> None:
        exec_mock = AsyncMock(return_value=_process(0, b"  \n"))
        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(TokenError, match="empty token"):
                await AzureCliTokenProvider().get_token(TokenScope.MANAGEMENT)

    @pytest.mark.asyncio
    async def test_missing_executable(self) -> None:
        exec_mock = AsyncMock(side_effect=FileNotFoundError("az"))
        with patch("asyncio.create_subprocess_exec", exec_mock):
            with pytest.raises(TokenError, match="unable to run the Azure CLI"):
                await AzureCliTokenProvider().get_token(TokenScope.MANAGEMENT)
