"""Tests for the fixture model and its JSON wire format."""

import json

import pytest
from pydantic import ValidationError

from opfp.errors import WitnessDecodeError
from opfp.kernel.fixture import (
    DEFAULT_CHAIN_NAME,
    FaultProofFixture,
    FaultProofInputs,
    FaultProofStatus,
    NamedChain,
    ProgramStats,
    UnnamedChain,
    chain_definition_from_wire,
    chain_definition_to_wire,
)
from opfp.kernel.rollup_config import Genesis, RollupConfig

from conftest import genesis_dict, h, hx, rollup_config_dict


def _inputs(**overrides) -> FaultProofInputs:
    fields = dict(
        l1_head=h(1),
        l2_head=h(2),
        l2_claim=h(3),
        l2_output_root=h(4),
        l2_block_number=1337,
    )
    fields.update(overrides)
    return FaultProofInputs(**fields)


class TestFaultProofStatus:
    """Status wire codec."""

    @pytest.mark.parametrize("value", [0, 1, 2, 3])
    def test_known_values_round_trip(self, value):
        assert int(FaultProofStatus.from_wire(value)) == value

    @pytest.mark.parametrize("value", [4, 5, 255, -1])
    def test_other_values_are_unknown(self, value):
        assert FaultProofStatus.from_wire(value) is FaultProofStatus.UNKNOWN

    def test_fixture_decodes_out_of_range_status_as_unknown(self):
        fixture = FaultProofFixture.model_validate(
            {"inputs": _inputs().model_dump(mode="json", by_alias=True), "expectedStatus": 42}
        )
        assert fixture.expected_status is FaultProofStatus.UNKNOWN

    def test_status_must_be_integer(self):
        payload = {"inputs": _inputs().model_dump(mode="json", by_alias=True), "expectedStatus": "0"}
        with pytest.raises(ValidationError, match="expectedStatus must be an integer"):
            FaultProofFixture.model_validate(payload)


class TestChainDefinition:
    """Externally tagged chain definition."""

    def test_default_is_named_base_mainnet(self):
        assert _inputs().chain_definition == NamedChain(name=DEFAULT_CHAIN_NAME)

    def test_named_wire_form(self):
        assert chain_definition_to_wire(NamedChain(name="op-mainnet")) == {"Named": "op-mainnet"}
        assert chain_definition_from_wire({"Named": "op-mainnet"}) == NamedChain(name="op-mainnet")

    def test_unnamed_wire_form(self):
        wire = {"Unnamed": [rollup_config_dict(), genesis_dict()]}
        chain = chain_definition_from_wire(wire)
        assert isinstance(chain, UnnamedChain)
        assert chain.rollup_config.l2_chain_id == 901
        assert chain.genesis.l1.number == 100
        encoded = chain_definition_to_wire(chain)
        assert list(encoded) == ["Unnamed"]
        config_out, genesis_out = encoded["Unnamed"]
        assert config_out["genesis"]["system_config"]["batcherAddr"] == "0x" + "33" * 20
        assert genesis_out["l2"]["hash"] == hx(0x22)

    @pytest.mark.parametrize(
        "wire",
        [
            {"Other": "x"},
            {"Named": 7},
            {"Unnamed": [rollup_config_dict()]},
            {"Named": "a", "Unnamed": []},
            "base-mainnet",
        ],
    )
    def test_malformed_wire_forms_rejected(self, wire):
        with pytest.raises(ValueError):
            chain_definition_from_wire(wire)


class TestFaultProofFixture:
    """Fixture JSON round trip."""

    def test_scenario_round_trip(self):
        fixture = FaultProofFixture(inputs=_inputs())
        text = fixture.to_json()
        data = json.loads(text)
        assert data == {
            "inputs": {
                "l1Head": hx(1),
                "l2Head": hx(2),
                "l2Claim": hx(3),
                "l2OutputRoot": hx(4),
                "l2BlockNumber": 1337,
                "chainDefinition": {"Named": "base-mainnet"},
            },
            "expectedStatus": 0,
            "witnessData": {},
        }
        assert FaultProofFixture.from_json_bytes(text.encode()) == fixture

    def test_witness_data_round_trip_sorted(self):
        witness = {h(2): b"\x02" * 32, h(1): b"\x01" * 32}
        fixture = FaultProofFixture(
            inputs=_inputs(),
            expected_status=FaultProofStatus.INVALID,
            witness_data=witness,
        )
        data = json.loads(fixture.to_json())
        assert list(data["witnessData"]) == [hx(1), hx(2)]
        assert data["witnessData"][hx(1)] == "0x" + "01" * 32
        assert data["expectedStatus"] == 1
        loaded = FaultProofFixture.from_json_bytes(fixture.to_json().encode())
        assert loaded.witness_data == witness
        assert loaded.expected_status is FaultProofStatus.INVALID

    def test_unnamed_chain_round_trip(self):
        chain = UnnamedChain(
            rollup_config=RollupConfig.model_validate(rollup_config_dict()),
            genesis=Genesis.model_validate(genesis_dict()),
        )
        fixture = FaultProofFixture(inputs=_inputs(chain_definition=chain))
        loaded = FaultProofFixture.from_json_bytes(fixture.to_json().encode())
        assert loaded.inputs.chain_definition == chain

    def test_witness_hex_without_prefix_accepted(self):
        payload = json.loads(FaultProofFixture(inputs=_inputs()).to_json())
        payload["witnessData"] = {h(9).hex(): "abcd"}
        fixture = FaultProofFixture.model_validate(payload)
        assert fixture.witness_data == {h(9): b"\xab\xcd"}

    def test_bad_witness_hex_raises(self):
        payload = json.loads(FaultProofFixture(inputs=_inputs()).to_json())
        payload["witnessData"] = {hx(9): "0xzz"}
        with pytest.raises(WitnessDecodeError, match="Malformed witness data"):
            FaultProofFixture.model_validate(payload)

    def test_short_witness_digest_raises(self):
        payload = json.loads(FaultProofFixture(inputs=_inputs()).to_json())
        payload["witnessData"] = {"0x0102": "0x00"}
        with pytest.raises(WitnessDecodeError, match="Malformed witness digest"):
            FaultProofFixture.model_validate(payload)

    def test_hash_must_be_32_bytes(self):
        with pytest.raises(ValidationError):
            _inputs(l1_head="0x1234")

    def test_block_number_hex_quantity_accepted(self):
        assert _inputs(l2_block_number="0x539").l2_block_number == 1337

    def test_block_number_out_of_range(self):
        with pytest.raises(ValidationError, match="u64"):
            _inputs(l2_block_number=2**64)


class TestProgramStats:

    def test_plain_run_only_has_runtime(self):
        assert json.loads(ProgramStats(runtime=12).to_json()) == {"runtime": 12}

    def test_emulator_fields_included(self):
        stats = ProgramStats(
            runtime=5,
            instructions=1000,
            pages=3,
            memory_used=12288,
            num_preimage_requests=7,
            total_preimage_size=900,
        )
        data = json.loads(stats.to_json())
        assert data["instructions"] == 1000
        assert data["memory_used"] == 12288
        assert len(data) == 6
