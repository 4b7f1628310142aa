"""
Round-trip verification of the decoder and assembler.

verify_roundtrip decodes an image, reassembles it and reports where the
reassembled bytes differ from the input, then decodes the reassembled
bytes and compares every decoded field against the first decode.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .assembler import image_to_bytes
from .errors import PEFormatError
from .parser import parse_bytes
from .snapshot import diff_snapshots, image_to_dict

logger = logging.getLogger(__name__)

# Limit on the number of differing byte ranges reported
MAX_REPORTED_DIFFERENCES = 16


@dataclass
class VerificationResult:
    """Result of a round-trip verification."""

    passed: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def add_error(self, msg: str) -> None:
        """Add an error (verification failed)."""
        self.errors.append(msg)
        self.passed = False

    def add_warning(self, msg: str) -> None:
        """Add a warning (verification passed but with concerns)."""
        self.warnings.append(msg)

    def merge(self, other: "VerificationResult") -> None:
        """Merge another result into this one."""
        if not other.passed:
            self.passed = False
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def __str__(self) -> str:
        """Human-readable summary."""
        lines = []
        if self.passed:
            lines.append("Verification PASSED")
        else:
            lines.append("Verification FAILED")

        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  - {e}")

        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  - {w}")

        return "\n".join(lines)


def find_differences(
    original: bytes, rebuilt: bytes, limit: int = MAX_REPORTED_DIFFERENCES
) -> list[tuple[int, int]]:
    """Find differing byte ranges as (start, end) offsets, end exclusive.

    Only the common prefix length is compared; a length mismatch is
    reported separately by the caller.
    """
    ranges: list[tuple[int, int]] = []
    start = None
    for offset in range(min(len(original), len(rebuilt))):
        if original[offset] != rebuilt[offset]:
            if start is None:
                start = offset
        elif start is not None:
            ranges.append((start, offset))
            start = None
            if len(ranges) >= limit:
                return ranges
    if start is not None:
        ranges.append((start, min(len(original), len(rebuilt))))
    return ranges


def check_bytes(original: bytes, rebuilt: bytes) -> VerificationResult:
    """Compare the input image with its reassembly."""
    result = VerificationResult()
    if len(original) != len(rebuilt):
        result.add_error(
            f"Size mismatch: original {len(original)} bytes, "
            f"reassembled {len(rebuilt)} bytes"
        )
    for start, end in find_differences(original, rebuilt):
        result.add_error(f"Bytes differ at [0x{start:x}, 0x{end:x})")
    return result


def check_fields(original: bytes, rebuilt: bytes) -> VerificationResult:
    """Compare the decoded fields of the input and its reassembly."""
    result = VerificationResult()
    first = image_to_dict(parse_bytes(original))
    try:
        second = image_to_dict(parse_bytes(rebuilt))
    except PEFormatError as e:
        result.add_error(f"Reassembled image does not decode: {e}")
        return result
    for path in diff_snapshots(first, second):
        result.add_error(f"Decoded field differs: {path}")
    return result


def verify_roundtrip(data: bytes | bytearray) -> VerificationResult:
    """Decode, reassemble and re-decode an image, reporting any drift.

    Raises:
        PEFormatError: If the input itself cannot be decoded
    """
    original = bytes(data)
    rebuilt = image_to_bytes(parse_bytes(original))

    result = VerificationResult()
    result.merge(check_bytes(original, rebuilt))
    result.merge(check_fields(original, rebuilt))
    if result.passed:
        logger.debug("Round trip reproduced %d bytes exactly", len(original))
    return result


def verify_file(path: Path) -> VerificationResult:
    """Verify the round trip of a PE file on disk."""
    return verify_roundtrip(Path(path).read_bytes())
