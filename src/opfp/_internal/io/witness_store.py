"""Sharded on-disk layout for the witness store.

Each preimage lives at ``<root>/<first 4 hex chars of digest>/<remaining hex>.txt``
and the file holds the preimage as hex text. Sharding on the first two digest
bytes caps any single directory at 65536 shards.
"""

from pathlib import Path
from typing import Dict, Mapping, Tuple, Union

import structlog

from opfp.errors import StagingIOError, WitnessDecodeError
from opfp.kernel.hex_utils import HexDecodeError, decode_hex, encode_hex

logger = structlog.get_logger(__name__)

SHARD_WIDTH = 4
WITNESS_SUFFIX = ".txt"


def shard_path(root: Path, digest: bytes) -> Path:
    """Path where a digest's preimage is staged."""
    key_hex = encode_hex(digest, prefix=False)
    shard, rest = key_hex[:SHARD_WIDTH], key_hex[SHARD_WIDTH:]
    return root / shard / f"{rest}{WITNESS_SUFFIX}"


def split_witness_name(shard: str, filename: str) -> str:
    """Rebuild a digest's hex from its shard directory and file name.

    Only the part before the first '.' of the file name is used, so
    ``abcd/ef.txt`` and ``abcd/ef.txt.bak`` both map to ``abcdef``; a shard
    holding both is rejected on harvest.
    """
    return shard + filename.split(".", 1)[0]


def stage_witness_store(witness_data: Mapping[bytes, bytes], root: Union[str, Path]) -> int:
    """Write every (digest, preimage) pair under root. Returns the number of files written.

    Raises:
        StagingIOError: On any filesystem failure
    """
    root = Path(root)
    count = 0
    for digest, preimage in witness_data.items():
        path = shard_path(root, digest)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(encode_hex(preimage, prefix=False), encoding="utf-8")
        except OSError as e:
            raise StagingIOError(path, f"Failed to stage witness: {e}") from e
        count += 1
    logger.debug("witness_store_staged", root=str(root), entries=count)
    return count


def _decode_file(shard_dir: Path, file_path: Path) -> Tuple[bytes, bytes]:
    key_hex = split_witness_name(shard_dir.name, file_path.name)
    try:
        digest = decode_hex(key_hex, 32)
    except HexDecodeError as e:
        raise WitnessDecodeError(f"Malformed witness digest at {file_path}: {e}") from None
    try:
        contents = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StagingIOError(file_path, f"Failed to read witness: {e}") from e
    try:
        preimage = decode_hex(contents)
    except HexDecodeError as e:
        raise WitnessDecodeError(f"Malformed witness content at {file_path}: {e}") from None
    return digest, preimage


def harvest_witness_store(root: Union[str, Path]) -> Dict[bytes, bytes]:
    """Read a sharded witness tree back into a digest -> preimage mapping.

    Top-level entries that are not directories are ignored (the program may
    leave other files next to its shards).

    Raises:
        StagingIOError: If the tree cannot be listed or read
        WitnessDecodeError: On a malformed digest or hex content, or two files
            naming the same digest
    """
    root = Path(root)
    witness_data: Dict[bytes, bytes] = {}
    try:
        shard_dirs = sorted(p for p in root.iterdir() if p.is_dir())
    except OSError as e:
        raise StagingIOError(root, f"Failed to list witness store: {e}") from e
    for shard_dir in shard_dirs:
        logger.debug("witness_shard_found", shard=shard_dir.name)
        try:
            files = sorted(shard_dir.iterdir())
        except OSError as e:
            raise StagingIOError(shard_dir, f"Failed to list shard: {e}") from e
        for file_path in files:
            digest, preimage = _decode_file(shard_dir, file_path)
            if digest in witness_data:
                raise WitnessDecodeError(
                    f"Duplicate witness digest {encode_hex(digest, prefix=False)} at {file_path}"
                )
            witness_data[digest] = preimage
    logger.debug("witness_store_harvested", root=str(root), entries=len(witness_data))
    return witness_data
