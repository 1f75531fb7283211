"""JSON-RPC clients for L1, L2 and rollup nodes.

Only read-only methods are used. Every transport failure, JSON-RPC error or
response that does not match the expected shape surfaces as ``NetworkError``
naming the method.
"""

import itertools
from typing import Any, List, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from opfp.errors import NetworkError
from opfp.kernel.hex_utils import B256, HexDecodeError, Quantity, parse_quantity
from opfp.kernel.rollup_config import BlockID

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_S = 30.0


class L2BlockRef(BaseModel):
    """Reference to an L2 block as reported by the rollup node."""
    hash: B256
    number: Quantity
    parent_hash: B256 = Field(alias="parentHash")
    timestamp: Quantity
    l1_origin: BlockID = Field(alias="l1origin")
    sequence_number: Quantity = Field(alias="sequenceNumber")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class OutputResponse(BaseModel):
    """Response of optimism_outputAtBlock."""
    version: B256
    output_root: B256 = Field(alias="outputRoot")
    block_ref: L2BlockRef = Field(alias="blockRef")
    withdrawal_storage_root: B256 = Field(alias="withdrawalStorageRoot")
    state_root: B256 = Field(alias="stateRoot")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class SafeHeadResponse(BaseModel):
    """Response of optimism_safeHeadAtL1Block."""
    l1_block: BlockID = Field(alias="l1Block")
    safe_head: BlockID = Field(alias="safeHead")

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


def block_number_hex(number: int) -> str:
    return f"0x{number:x}"


class JsonRpcClient:
    """Minimal synchronous JSON-RPC 2.0 client over HTTP POST."""

    def __init__(
        self,
        url: str,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url
        self._client = httpx.Client(timeout=httpx.Timeout(timeout_s, connect=5.0), transport=transport)
        self._ids = itertools.count(1)
        self._log = logger.bind(url=url)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "JsonRpcClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        self._log.debug("rpc_request", method=method, params=body["params"])
        try:
            resp = self._client.post(self.url, json=body)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            raise NetworkError(method, f"request to {self.url} failed: {e}") from e
        except ValueError as e:
            raise NetworkError(method, f"non-JSON response from {self.url}: {e}") from e
        if not isinstance(data, dict):
            raise NetworkError(method, f"unexpected response shape: {data!r}")
        if data.get("error") is not None:
            raise NetworkError(method, f"RPC error from {self.url}: {data['error']}")
        if "result" not in data:
            raise NetworkError(method, "response has no result")
        return data["result"]

    def request_model(self, method: str, params: List[Any], model: type):
        result = self.request(method, params)
        try:
            return model.model_validate(result)
        except ValidationError as e:
            raise NetworkError(method, f"malformed response: {e}") from e


class RollupProvider:
    """Rollup node (op-node) RPC."""

    def __init__(self, client: JsonRpcClient):
        self.client = client

    @classmethod
    def new_http(cls, url: str, **kwargs) -> "RollupProvider":
        return cls(JsonRpcClient(url, **kwargs))

    def output_at_block(self, block_number: int) -> OutputResponse:
        """Output root and block ref for an L2 block."""
        return self.client.request_model(
            "optimism_outputAtBlock", [block_number_hex(block_number)], OutputResponse
        )

    def safe_head_at_block(self, block_number: int) -> SafeHeadResponse:
        """Safe L2 head as of an L1 block."""
        return self.client.request_model(
            "optimism_safeHeadAtL1Block", [block_number_hex(block_number)], SafeHeadResponse
        )

    def l1_origin_number(self, l2_block: int) -> int:
        return self.output_at_block(l2_block).block_ref.l1_origin.number


class ChainProvider:
    """Execution-layer RPC (eth_* methods), used for both L1 and L2."""

    def __init__(self, client: JsonRpcClient):
        self.client = client

    @classmethod
    def new_http(cls, url: str, **kwargs) -> "ChainProvider":
        return cls(JsonRpcClient(url, **kwargs))

    def chain_id(self) -> int:
        result = self.client.request("eth_chainId")
        try:
            return parse_quantity(result)
        except HexDecodeError as e:
            raise NetworkError("eth_chainId", f"malformed chain id: {e}") from e

    def block_hash_by_number(self, number: int) -> bytes:
        """Hash of a block, raising NetworkError if the node does not know it."""
        method = "eth_getBlockByNumber"
        result = self.client.request(method, [block_number_hex(number), False])
        if result is None:
            raise NetworkError(method, f"block {number} not found")
        try:
            header = BlockID.model_validate(result)
        except ValidationError as e:
            raise NetworkError(method, f"malformed block: {e}") from e
        return header.hash
