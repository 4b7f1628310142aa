"""
PE image and resource payload encoding.

Each writer emits the same field sequence its decoder reads, so decoding
what was written reproduces every encoded field. The resource tree, import
directory and load config are decode-only: write_image emits them as part
of the section bytes they were decoded from.
"""

import logging

from .errors import MalformedStructure
from .image import Image
from .io import DataWriter
from .resource_types import FixedFileInfo, IconDirectory, IconDirectoryEntry, RGBQuad

logger = logging.getLogger(__name__)


# =============================================================================
# Resource payloads
# =============================================================================


def write_fixed_file_info(info: FixedFileInfo, writer: DataWriter) -> None:
    info.write(writer)


def write_rgb_quad(rgb: RGBQuad, writer: DataWriter) -> None:
    """Write a palette entry as blue, green, red, reserved."""
    rgb.write(writer)


def write_icon_directory_entry(entry: IconDirectoryEntry, writer: DataWriter) -> None:
    entry.write(writer)


def write_icon_directory(directory: IconDirectory, writer: DataWriter) -> None:
    """Write the icon directory header followed by Count entries.

    Raises:
        MalformedStructure: If fewer than Count entries are present
    """
    if len(directory.entries) < directory.Count:
        raise MalformedStructure(
            f"Icon directory declares {directory.Count} entries "
            f"but holds {len(directory.entries)}"
        )
    directory.write(writer)
    for entry in directory.entries[: directory.Count]:
        write_icon_directory_entry(entry, writer)


# =============================================================================
# Whole image
# =============================================================================


def write_image(image: Image, writer: DataWriter) -> None:
    """Reassemble a decoded image.

    Headers are written in decode order. The section table goes to
    optional_header_start + SizeOfOptionalHeader, section bytes to their
    PointerToRawData and the overlay after the last section. Captured
    gaps are written before the section bytes; all other gaps are
    zero-filled.
    """
    image.dos_header.write(writer)
    writer.write_bytes(image.stub)
    writer.write_bytes(image.signature)
    image.coff_header.write(writer)

    optional_start = writer.position
    image.optional_header.write(writer)
    writer.seek(optional_start + image.coff_header.SizeOfOptionalHeader)

    sections = image.section_table
    for header in sections.headers:
        header.write(writer)
    headers_end = writer.position

    for gap in image.gaps:
        writer.seek(gap.offset)
        writer.write_bytes(gap.data)

    for header in sorted(sections.headers, key=lambda h: h.PointerToRawData):
        if not header.has_raw_data:
            continue
        data = sections.section_bytes(header.name_str)
        if data is None:
            logger.debug("No bytes loaded for section %s", header.name_str)
            continue
        writer.seek(header.PointerToRawData)
        writer.write_bytes(data)

    if image.overlay:
        writer.seek(max(sections.end_of_raw_data, headers_end))
        writer.write_bytes(image.overlay)


def image_to_bytes(image: Image) -> bytes:
    """Reassemble a decoded image into a byte string."""
    writer = DataWriter()
    write_image(image, writer)
    return writer.getvalue()
