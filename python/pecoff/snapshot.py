"""
Schema-driven snapshots of decoded images.

image_to_dict walks the dataclass schema of the object graph and yields
plain dicts, lists, ints, strings and bytes. pack_snapshot serializes that
to MessagePack and compresses it with zstd, giving a compact record of
every decoded field that can be stored and compared later.

Usage:
    blob = pack_snapshot(parse_file(Path("foo.dll")))
    ...
    differences = diff_snapshots(unpack_snapshot(blob), image_to_dict(other))
"""

import dataclasses
from typing import Any

import msgpack
import zstandard as zstd

from .image import Image

SNAPSHOT_FORMAT_VERSION = 1
DEFAULT_COMPRESSION_LEVEL = 3


def image_to_dict(image: Image) -> dict[str, Any]:
    """Convert a decoded image to plain Python containers."""
    return dataclasses.asdict(image)


def pack_snapshot(image: Image, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Serialize an image to zstd-compressed MessagePack.

    Args:
        image: Decoded image
        level: zstd compression level

    Returns:
        Compressed snapshot bytes
    """
    payload = {
        "version": SNAPSHOT_FORMAT_VERSION,
        "image": image_to_dict(image),
    }
    packed = msgpack.packb(payload, use_bin_type=True)
    cctx = zstd.ZstdCompressor(level=level)
    return cctx.compress(packed)


def unpack_snapshot(blob: bytes) -> dict[str, Any]:
    """Restore the image dict stored by pack_snapshot.

    Raises:
        ValueError: If the snapshot is corrupt or of an unknown version
    """
    dctx = zstd.ZstdDecompressor()
    try:
        packed = dctx.decompress(blob)
    except zstd.ZstdError as e:
        raise ValueError(f"Snapshot decompression failed: {e}") from e

    try:
        payload = msgpack.unpackb(packed, raw=False, strict_map_key=False)
    except (msgpack.exceptions.UnpackException, ValueError) as e:
        raise ValueError(f"Snapshot is not valid MessagePack: {e}") from e

    if not isinstance(payload, dict) or "image" not in payload:
        raise ValueError(
            f"Invalid snapshot format: expected dict with 'image', "
            f"got {type(payload).__name__}"
        )
    if payload.get("version") != SNAPSHOT_FORMAT_VERSION:
        raise ValueError(f"Unsupported snapshot version: {payload.get('version')!r}")
    return payload["image"]


def diff_snapshots(left: Any, right: Any, path: str = "") -> list[str]:
    """List the paths at which two snapshot values differ.

    Tuples and lists compare alike, so a dict restored from MessagePack
    matches one built directly by image_to_dict.
    """
    if isinstance(left, dict) and isinstance(right, dict):
        differences = []
        for key in sorted(set(left) | set(right), key=str):
            child = f"{path}.{key}" if path else str(key)
            if key not in left or key not in right:
                differences.append(child)
            else:
                differences.extend(diff_snapshots(left[key], right[key], child))
        return differences

    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return [f"{path}[len {len(left)} != {len(right)}]"]
        differences = []
        for index, (a, b) in enumerate(zip(left, right)):
            differences.extend(diff_snapshots(a, b, f"{path}[{index}]"))
        return differences

    if left != right:
        return [path]
    return []
