"""
Error taxonomy for PE/COFF decoding.

All errors derive from ValueError so callers that already guard binary
parsing with ``except ValueError`` keep working.
"""


class PEFormatError(ValueError):
    """Base class for PE/COFF decoding failures."""

    pass


class TruncatedInput(PEFormatError):
    """Raised when the input ends before a fixed-width field could be read."""

    pass


class OutOfBoundsOffset(PEFormatError):
    """Raised when a computed offset or RVA falls outside the available data."""

    pass


class MalformedStructure(PEFormatError):
    """Raised when a decoded structure violates a format invariant."""

    pass


class MalformedResourceTree(MalformedStructure):
    """Raised when the resource directory tree cannot be walked."""

    pass
