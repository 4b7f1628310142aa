#!/usr/bin/env python3
"""
PE round-trip CLI tool.

Decodes each binary, reassembles it and reports whether the result matches
the input byte for byte and field for field.

Usage:
    python -m pecoff.tools.roundtrip <binary> [<binary> ...] [--verbose]
"""

import argparse
import logging
import sys
from pathlib import Path

from pecoff import PEFormatError, VerificationResult, is_pe_binary, verify_file


def verify_binary(binary: Path, verbose: bool = False) -> VerificationResult:
    """Run the round-trip check on one binary and print the outcome.

    Args:
        binary: Path to PE binary
        verbose: Whether to show warnings

    Returns:
        VerificationResult for the binary
    """
    print(f"Verifying: {binary}")
    print("-" * 60)

    result = VerificationResult()
    try:
        result.merge(verify_file(binary))
    except PEFormatError as e:
        result.add_error(f"Decode failed: {e}")

    print("  roundtrip: ", end="")
    print("PASS" if result.passed else "FAIL")
    for e in result.errors:
        print(f"    ERROR: {e}")
    if verbose:
        for w in result.warnings:
            print(f"    WARN: {w}")
    return result


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Check that PE binaries survive a decode/reassemble round trip"
    )
    parser.add_argument(
        "binaries", type=Path, nargs="+", help="Paths to PE binaries to verify"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show verbose output including warnings and decoder debug logs",
    )
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    overall = VerificationResult()
    for binary in args.binaries:
        if not binary.exists():
            print(f"Error: {binary} does not exist", file=sys.stderr)
            return 1
        if not is_pe_binary(binary):
            print(f"Error: {binary} is not a PE image", file=sys.stderr)
            return 1
        overall.merge(verify_binary(binary, args.verbose))

    print("-" * 60)
    print(f"Overall: {'PASSED' if overall.passed else 'FAILED'}")
    return 0 if overall.passed else 1


if __name__ == "__main__":
    sys.exit(main())
