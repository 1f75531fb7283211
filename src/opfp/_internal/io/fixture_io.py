"""Fixture and JSON artifact I/O helpers (internal)."""

import json
from pathlib import Path
from typing import Any, Union

import structlog
from pydantic import BaseModel, ValidationError

from opfp.errors import ConfigResolutionError, FixtureLoadError, StagingIOError
from opfp.kernel.fixture import FaultProofFixture
from opfp.kernel.rollup_config import Genesis, RollupConfig

logger = structlog.get_logger(__name__)


def load_fixture(path: Union[str, Path]) -> FaultProofFixture:
    """Load a fixture from a JSON file.

    A fixture without a chainDefinition falls back to the default named chain;
    that substitution is logged as a warning.

    Raises:
        FixtureLoadError: If the file is unreadable, not JSON, or fails validation
        WitnessDecodeError: If a witness entry is not valid hex
    """
    fixture_path = Path(path)
    try:
        data = fixture_path.read_bytes()
    except OSError as e:
        raise FixtureLoadError(f"Failed to read fixture file {fixture_path}: {e}") from e
    try:
        payload = json.loads(data)
        fixture = FaultProofFixture.model_validate(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FixtureLoadError(f"Failed to parse fixture file {fixture_path}: {e}") from e
    except ValidationError as e:
        raise FixtureLoadError(f"Invalid fixture file {fixture_path}: {e}") from e
    if "chainDefinition" not in payload["inputs"]:
        logger.warning(
            "chain_definition_defaulted",
            path=str(fixture_path),
            chain=fixture.inputs.chain_definition.name,
        )
    return fixture


def write_json(path: Union[str, Path], obj: Union[BaseModel, Any]) -> Path:
    """Write pretty JSON (models are dumped by alias, without nulls).

    Raises:
        StagingIOError: On any filesystem failure
    """
    out = Path(path)
    if isinstance(obj, BaseModel):
        payload = obj.model_dump(mode="json", by_alias=True, exclude_none=True)
    else:
        payload = obj
    try:
        out.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise StagingIOError(out, f"Failed to write JSON: {e}") from e
    return out


def write_fixture(path: Union[str, Path], fixture: FaultProofFixture) -> Path:
    out = Path(path)
    try:
        out.write_text(fixture.to_json() + "\n", encoding="utf-8")
    except OSError as e:
        raise StagingIOError(out, f"Failed to write fixture: {e}") from e
    return out


def _load_model(path: Union[str, Path], model: type, what: str):
    model_path = Path(path)
    try:
        data = json.loads(model_path.read_text(encoding="utf-8"))
        return model.model_validate(data)
    except OSError as e:
        raise ConfigResolutionError(f"Failed to read {what} file {model_path}: {e}") from e
    except (json.JSONDecodeError, ValidationError) as e:
        raise ConfigResolutionError(f"Malformed {what} file {model_path}: {e}") from e


def load_rollup_config(path: Union[str, Path]) -> RollupConfig:
    """Load a portable rollup config (rollup.json) from disk."""
    return _load_model(path, RollupConfig, "rollup config")


def load_genesis(path: Union[str, Path]) -> Genesis:
    """Load a rollup genesis from disk."""
    return _load_model(path, Genesis, "genesis")
