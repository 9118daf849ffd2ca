"""Integration tests for the TON client: endpoint fallback, get-methods, account reads."""
from __future__ import annotations

import base64
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tonstable_liquidator.cell import (
    Address,
    Cell,
    StackItem,
    address_cell,
    parse_tuple,
    serialize_tuple,
)
from tonstable_liquidator.chains.ton import TonClient
from tonstable_liquidator.config import ChainConfig
from tonstable_liquidator.errors import ChainError

SESSION = "tonstable_liquidator.chains.ton.client.aiohttp.ClientSession"
CONNECTOR = "tonstable_liquidator.chains.ton.client.aiohttp.TCPConnector"


@pytest.fixture()
def client() -> TonClient:
    return TonClient(
        ChainConfig(
            rpc_endpoints=(
                "https://rpc1.example.com/",
                "https://rpc2.example.com",
                "https://rpc3.example.com",
            ),
            rpc_timeout=5,
        )
    )


def _mock_session(
    response_data: dict[str, Any] | None = None,
    error: Exception | None = None,
    status: int = 200,
) -> AsyncMock:
    """Create a mock aiohttp session that returns given data or raises error."""
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=response_data or {})
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    mock_session = AsyncMock()
    if error:
        mock_session.get = MagicMock(side_effect=error)
    else:
        mock_session.get = MagicMock(return_value=mock_response)
    mock_session.__aenter__ = AsyncMock(return_value=mock_session)
    mock_session.__aexit__ = AsyncMock(return_value=None)

    return mock_session


def _result_raw(items: list[StackItem]) -> str:
    return base64.b64encode(serialize_tuple(items).to_boc()).decode()


class TestRequest:
    @pytest.mark.asyncio
    async def test_successful_get(self, client: TonClient) -> None:
        session = _mock_session({"last": {"seqno": 42}})

        with patch(SESSION, return_value=session):
            with patch(CONNECTOR):
                result = await client.request("/block/latest")

        assert result == {"last": {"seqno": 42}}
        assert session.get.call_args[0][0] == "https://rpc1.example.com/block/latest"

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, client: TonClient) -> None:
        failing = _mock_session(error=ConnectionError("refused"))
        working = _mock_session({"ok": True})

        with patch(SESSION, side_effect=[failing, working]):
            with patch(CONNECTOR):
                result = await client.request("/block/latest")

        assert result == {"ok": True}
        assert client.current_rpc_index == 1

    @pytest.mark.asyncio
    async def test_http_error_falls_through(self, client: TonClient) -> None:
        sessions = [_mock_session(status=502), _mock_session(status=503), _mock_session({"a": 1})]

        with patch(SESSION, side_effect=sessions):
            with patch(CONNECTOR):
                result = await client.request("/block/latest")

        assert result == {"a": 1}
        assert client.current_rpc_index == 2

    @pytest.mark.asyncio
    async def test_all_endpoints_fail(self, client: TonClient) -> None:
        with patch(SESSION, return_value=_mock_session(error=ConnectionError("down"))):
            with patch(CONNECTOR):
                with pytest.raises(ChainError, match="All RPC endpoints failed"):
                    await client.request("/block/latest")

    @pytest.mark.asyncio
    async def test_no_endpoints(self) -> None:
        with pytest.raises(ChainError, match="No RPC endpoints"):
            await TonClient(ChainConfig()).request("/block/latest")


class TestGetMethods:
    @pytest.mark.asyncio
    async def test_last_seqno(self, client: TonClient) -> None:
        client.request = AsyncMock(return_value={"last": {"seqno": 123}})
        assert await client.get_last_seqno() == 123

    @pytest.mark.asyncio
    async def test_last_seqno_malformed(self, client: TonClient) -> None:
        client.request = AsyncMock(return_value={"unexpected": True})
        with pytest.raises(ChainError):
            await client.get_last_seqno()

    @pytest.mark.asyncio
    async def test_run_method_decodes_stack(
        self, client: TonClient, singleton_address: Address, owner: Address
    ) -> None:
        items = [StackItem.of_int(7), StackItem.of_slice(address_cell(owner))]
        client.request = AsyncMock(
            side_effect=[
                {"last": {"seqno": 10}},
                {"exitCode": 0, "resultRaw": _result_raw(items)},
            ]
        )

        stack = await client.run_method(
            singleton_address, "get_position_state", [StackItem.of_slice(address_cell(owner))]
        )

        assert stack == items
        path = client.request.await_args_list[1].args[0]
        prefix = f"/block/10/{singleton_address.to_string()}/run/get_position_state/"
        assert path.startswith(prefix)
        encoded = path[len(prefix):]
        assert "=" not in encoded
        args_cell = Cell.from_boc(base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)))
        assert parse_tuple(args_cell) == [StackItem.of_slice(address_cell(owner))]

    @pytest.mark.asyncio
    async def test_run_method_without_args(
        self, client: TonClient, singleton_address: Address
    ) -> None:
        client.request = AsyncMock(
            side_effect=[{"last": {"seqno": 10}}, {"exitCode": 1, "resultRaw": None}]
        )

        assert await client.run_method(singleton_address, "get_singleton_state") == []
        path = client.request.await_args_list[1].args[0]
        assert path.endswith("/run/get_singleton_state")

    @pytest.mark.asyncio
    async def test_run_method_failure_exit_code(
        self, client: TonClient, singleton_address: Address
    ) -> None:
        client.request = AsyncMock(
            side_effect=[{"last": {"seqno": 10}}, {"exitCode": 11, "resultRaw": None}]
        )
        with pytest.raises(ChainError, match="exit code 11"):
            await client.run_method(singleton_address, "get_position_state")

    @pytest.mark.asyncio
    async def test_account_last_lt(self, client: TonClient, owner: Address) -> None:
        client.request = AsyncMock(
            side_effect=[
                {"last": {"seqno": 10}},
                {"account": {"last": {"lt": "4500000000001", "hash": "x"}}},
            ]
        )
        assert await client.get_account_last_lt(owner) == 4_500_000_000_001

    @pytest.mark.asyncio
    async def test_account_without_transactions(self, client: TonClient, owner: Address) -> None:
        client.request = AsyncMock(
            side_effect=[{"last": {"seqno": 10}}, {"account": {"last": None}}]
        )
        assert await client.get_account_last_lt(owner) is None

