"""Fault proof fixture models.

A fixture bundles the inputs a fault-proof program is given, the chain it runs
against, the status it is expected to exit with, and every preimage it read
during the run that produced the fixture (the witness store).
"""

import json
from enum import IntEnum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from opfp.errors import WitnessDecodeError
from .hex_utils import B256, HexDecodeError, Quantity, decode_hex, encode_hex
from .rollup_config import Genesis, RollupConfig


DEFAULT_CHAIN_NAME = "base-mainnet"


class FaultProofStatus(IntEnum):
    """Result of executing the fault proof program. Values are part of the wire format."""
    VALID = 0
    INVALID = 1
    PANIC = 2
    UNFINISHED = 3
    UNKNOWN = 4

    @classmethod
    def from_wire(cls, value: int) -> "FaultProofStatus":
        """Decode a wire value; anything outside 0..3 is UNKNOWN."""
        if isinstance(value, cls):
            return value
        if value in (0, 1, 2, 3):
            return cls(value)
        return cls.UNKNOWN


class NamedChain(BaseModel):
    """A well-known network, resolved by name by the program itself."""
    name: str

    model_config = ConfigDict(frozen=True)


class UnnamedChain(BaseModel):
    """A chain fully described by an explicit rollup config and genesis."""
    rollup_config: RollupConfig
    genesis: Genesis

    model_config = ConfigDict(frozen=True)


ChainDefinition = Union[NamedChain, UnnamedChain]


def default_chain_definition() -> NamedChain:
    return NamedChain(name=DEFAULT_CHAIN_NAME)


def chain_definition_from_wire(value: Any) -> ChainDefinition:
    """Decode the externally tagged form: {"Named": name} | {"Unnamed": [config, genesis]}."""
    if isinstance(value, (NamedChain, UnnamedChain)):
        return value
    if not isinstance(value, dict) or len(value) != 1:
        raise ValueError(f"chainDefinition must be a single-key object, got {value!r}")
    tag, body = next(iter(value.items()))
    if tag == "Named":
        if not isinstance(body, str):
            raise ValueError("Named chain definition must carry a string")
        return NamedChain(name=body)
    if tag == "Unnamed":
        if not isinstance(body, (list, tuple)) or len(body) != 2:
            raise ValueError("Unnamed chain definition must carry [rollupConfig, genesis]")
        rollup_config, genesis = body
        return UnnamedChain(
            rollup_config=RollupConfig.model_validate(rollup_config),
            genesis=Genesis.model_validate(genesis),
        )
    raise ValueError(f"Unknown chain definition variant: {tag!r}")


def chain_definition_to_wire(chain: ChainDefinition) -> Dict[str, Any]:
    if isinstance(chain, NamedChain):
        return {"Named": chain.name}
    if isinstance(chain, UnnamedChain):
        return {
            "Unnamed": [
                chain.rollup_config.to_json_dict(),
                chain.genesis.model_dump(mode="json", by_alias=True),
            ]
        }
    raise TypeError(f"Not a chain definition: {type(chain).__name__}")


class FaultProofInputs(BaseModel):
    """The claim under test.

    l2_head/l2_output_root describe the parent of l2_block_number; l2_claim
    describes l2_block_number itself.
    """
    l1_head: B256 = Field(alias="l1Head")
    l2_head: B256 = Field(alias="l2Head")
    l2_claim: B256 = Field(alias="l2Claim")
    l2_output_root: B256 = Field(alias="l2OutputRoot")
    l2_block_number: Quantity = Field(alias="l2BlockNumber")
    chain_definition: ChainDefinition = Field(
        default_factory=default_chain_definition, alias="chainDefinition"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("chain_definition", mode="before")
    @classmethod
    def validate_chain_definition(cls, v: Any) -> ChainDefinition:
        return chain_definition_from_wire(v)

    @field_serializer("chain_definition")
    def serialize_chain_definition(self, chain: ChainDefinition) -> Dict[str, Any]:
        return chain_definition_to_wire(chain)

    @field_validator("l2_block_number")
    @classmethod
    def validate_block_number(cls, v: int) -> int:
        if v < 0 or v >= 2**64:
            raise ValueError(f"l2BlockNumber out of u64 range: {v}")
        return v


def decode_witness_entry(key: Any, value: Any) -> tuple[bytes, bytes]:
    """Decode one (digest, preimage) pair from hex (bytes pass through).

    Raises:
        WitnessDecodeError: If the digest is not 32 bytes of hex or the value is not hex
    """
    try:
        digest = key if isinstance(key, bytes) else decode_hex(key, 32)
        if len(digest) != 32:
            raise HexDecodeError(f"Expected 32-byte digest, got {len(digest)} bytes")
    except HexDecodeError as e:
        raise WitnessDecodeError(f"Malformed witness digest {key!r}: {e}") from None
    try:
        preimage = value if isinstance(value, bytes) else decode_hex(value)
    except HexDecodeError as e:
        raise WitnessDecodeError(f"Malformed witness data for {key!r}: {e}") from None
    return digest, preimage


class FaultProofFixture(BaseModel):
    """Top-level fixture: inputs, expected status and the witness store."""
    inputs: FaultProofInputs
    expected_status: FaultProofStatus = Field(default=FaultProofStatus.VALID, alias="expectedStatus")
    witness_data: Dict[bytes, bytes] = Field(default_factory=dict, alias="witnessData")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("expected_status", mode="before")
    @classmethod
    def validate_expected_status(cls, v: Any) -> FaultProofStatus:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"expectedStatus must be an integer, got {v!r}")
        return FaultProofStatus.from_wire(v)

    @field_serializer("expected_status")
    def serialize_expected_status(self, status: FaultProofStatus) -> int:
        return int(status)

    @field_validator("witness_data", mode="before")
    @classmethod
    def validate_witness_data(cls, v: Any) -> Dict[bytes, bytes]:
        if not isinstance(v, dict):
            raise ValueError("witnessData must be an object of hex digest -> hex bytes")
        return dict(decode_witness_entry(key, value) for key, value in v.items())

    @field_serializer("witness_data")
    def serialize_witness_data(self, data: Dict[bytes, bytes]) -> Dict[str, str]:
        return {encode_hex(k): encode_hex(data[k]) for k in sorted(data)}

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=2)

    @classmethod
    def from_json_bytes(cls, data: bytes) -> "FaultProofFixture":
        """Load a fixture from JSON bytes (pure, no I/O)."""
        payload = json.loads(data)
        return cls.model_validate(payload)


class ProgramStats(BaseModel):
    """Statistics from one program run. Optional fields come only from the emulator."""
    runtime: int  # wall-clock milliseconds
    instructions: Optional[int] = None
    pages: Optional[int] = None
    memory_used: Optional[int] = None
    num_preimage_requests: Optional[int] = None
    total_preimage_size: Optional[int] = None

    model_config = ConfigDict(frozen=True)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", exclude_none=True), indent=2)
