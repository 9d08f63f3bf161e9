"""Eth1 JSON-RPC provider."""

import asyncio
import logging
import time
from typing import Any, Optional, Protocol

import aiohttp
import jwt

from .types import Eth1BlockHeader, parse_block, _hex_to_bytes
from ..exceptions import ExternalRequestError
from .. import metrics

logger = logging.getLogger(__name__)

# Deposit contract view function selectors
GET_DEPOSIT_ROOT_SELECTOR = bytes.fromhex("c5f2892f")
GET_DEPOSIT_COUNT_SELECTOR = bytes.fromhex("621fd130")


class Eth1Provider(Protocol):
    """Read access to the deposit chain."""

    async def get_latest_block(self) -> Eth1BlockHeader: ...

    async def get_block_by_number(self, number: int) -> Optional[Eth1BlockHeader]: ...

    async def get_block_by_hash(self, block_hash: bytes) -> Optional[Eth1BlockHeader]: ...

    async def call(self, to: bytes, data: bytes, block_number: int) -> bytes: ...

    async def get_logs(self, address: bytes, topic: bytes, from_block: int, to_block: int) -> list[dict]: ...


class JsonRpcEth1Provider:
    """Eth1Provider over HTTP JSON-RPC.

    All failures (transport errors, timeouts, non-200 responses and JSON-RPC
    errors) are raised as ExternalRequestError.
    """

    def __init__(self, url: str, timeout: float = 10.0, jwt_secret: bytes = b""):
        self.url = url
        self.timeout = timeout
        self.jwt_secret = jwt_secret
        self._session: Optional[aiohttp.ClientSession] = None
        self._request_id = 0

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Ensure we have an active session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _create_jwt_token(self) -> str:
        """Create a JWT token for an authenticated RPC port."""
        return jwt.encode({"iat": int(time.time())}, self.jwt_secret, algorithm="HS256")

    async def _call(self, method: str, params: list) -> Any:
        """Make a JSON-RPC call."""
        session = await self._ensure_session()
        self._request_id += 1

        headers = {"Content-Type": "application/json"}
        if self.jwt_secret:
            headers["Authorization"] = f"Bearer {self._create_jwt_token()}"

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        logger.debug(f"Eth1 call: {method}")

        start_time = time.time()
        error_type = None

        try:
            async with session.post(self.url, json=payload, headers=headers) as response:
                if response.status != 200:
                    error_type = f"http_{response.status}"
                    text = await response.text()
                    raise ExternalRequestError(f"{method}: {text[:200]}", status=response.status)

                data = await response.json()
                if "error" in data:
                    error = data["error"]
                    error_type = str(error.get("code", "unknown"))
                    raise ExternalRequestError(
                        f"{method}: {error.get('message', '')}", status=error.get("code")
                    )
                return data.get("result")
        except aiohttp.ClientError as e:
            error_type = "connection_error"
            logger.error(f"Eth1 connection error on {method}: {e}")
            raise ExternalRequestError(f"{method}: {e}") from e
        except asyncio.TimeoutError as e:
            error_type = "timeout"
            logger.error(f"Eth1 request {method} timed out after {self.timeout}s")
            raise ExternalRequestError(f"{method}: timed out") from e
        finally:
            metrics.record_eth1_request(method, time.time() - start_time, error_type)

    async def get_latest_block(self) -> Eth1BlockHeader:
        block = parse_block(await self._call("eth_getBlockByNumber", ["latest", False]))
        if block is None:
            raise ExternalRequestError("eth_getBlockByNumber: latest block missing")
        return block

    async def get_block_by_number(self, number: int) -> Optional[Eth1BlockHeader]:
        return parse_block(await self._call("eth_getBlockByNumber", [hex(number), False]))

    async def get_block_by_hash(self, block_hash: bytes) -> Optional[Eth1BlockHeader]:
        return parse_block(await self._call("eth_getBlockByHash", ["0x" + block_hash.hex(), False]))

    async def call(self, to: bytes, data: bytes, block_number: int) -> bytes:
        result = await self._call(
            "eth_call",
            [{"to": "0x" + to.hex(), "data": "0x" + data.hex()}, hex(block_number)],
        )
        return _hex_to_bytes(result or "0x")

    async def get_logs(self, address: bytes, topic: bytes, from_block: int, to_block: int) -> list[dict]:
        result = await self._call(
            "eth_getLogs",
            [{
                "address": "0x" + address.hex(),
                "topics": ["0x" + topic.hex()],
                "fromBlock": hex(from_block),
                "toBlock": hex(to_block),
            }],
        )
        return result or []
