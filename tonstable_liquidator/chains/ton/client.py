"""TON HTTP API v4 client with endpoint fallback."""
import base64
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...cell import Address, Cell, StackItem, parse_tuple, serialize_tuple
from ...config import ChainConfig
from ...errors import ChainError

logger = logging.getLogger(__name__)

# exit code 1 is the alternative success code of TVM
_SUCCESS_EXIT_CODES = (0, 1)


def _url_safe(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


class TonClient:
    """Ledger node client over the v4 HTTP API with automatic endpoint fallback."""

    def __init__(self, config: ChainConfig) -> None:
        self.endpoints = [e.rstrip("/") for e in config.rpc_endpoints]
        self.timeout = config.rpc_timeout
        self.current_rpc_index = 0

    async def request(self, path: str) -> dict[str, Any]:
        """GET ``path``, trying each endpoint in turn."""
        if not self.endpoints:
            raise ChainError("No RPC endpoints configured")

        ssl_context = ssl.create_default_context(cafile=certifi.where())

        last_error: Exception | None = None
        for attempt in range(len(self.endpoints)):
            rpc_index = (self.current_rpc_index + attempt) % len(self.endpoints)
            rpc_url = self.endpoints[rpc_index]

            try:
                connector = aiohttp.TCPConnector(ssl=ssl_context)
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                async with aiohttp.ClientSession(connector=connector) as session:
                    async with session.get(rpc_url + path, timeout=timeout) as response:
                        if response.status != 200:
                            raise ChainError(f"HTTP {response.status} for {path}")
                        result = await response.json()

                        if rpc_index != self.current_rpc_index:
                            logger.info("Switched to RPC endpoint: %s", rpc_url)
                            self.current_rpc_index = rpc_index

                        return result
            except Exception as e:
                last_error = e
                logger.warning("RPC endpoint %s failed: %s", rpc_url, e)
                if attempt < len(self.endpoints) - 1:
                    logger.info("Trying next endpoint...")
                continue

        raise ChainError(f"All RPC endpoints failed. Last error: {last_error}")

    async def get_last_seqno(self) -> int:
        """Seqno of the latest masterchain block."""
        result = await self.request("/block/latest")
        try:
            return int(result["last"]["seqno"])
        except (KeyError, TypeError, ValueError) as e:
            raise ChainError(f"Unexpected /block/latest response: {result}") from e

    async def get_account_last_lt(self, address: Address) -> int | None:
        """Logical time of the account's last transaction, ``None`` if it has none."""
        seqno = await self.get_last_seqno()
        result = await self.request(f"/block/{seqno}/{address.to_string()}")
        last = result.get("account", {}).get("last")
        if not last:
            return None
        return int(last["lt"])

    async def run_method(
        self, address: Address, method: str, args: list[StackItem] | None = None
    ) -> list[StackItem]:
        """Run a get-method against the latest block and return its result stack.

        Raises :class:`ChainError` when the method exits with a failure code.
        """
        seqno = await self.get_last_seqno()
        path = f"/block/{seqno}/{address.to_string()}/run/{method}"
        if args:
            path += "/" + _url_safe(serialize_tuple(args).to_boc(has_crc32c=False))

        result = await self.request(path)
        exit_code = result.get("exitCode")
        if exit_code not in _SUCCESS_EXIT_CODES:
            raise ChainError(f"Get-method {method} failed with exit code {exit_code}")

        raw = result.get("resultRaw")
        if not raw:
            return []
        return parse_tuple(Cell.from_boc(base64.b64decode(raw)))
