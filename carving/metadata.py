"""
Metadata Extractors — structural summaries of carved files.

Every walk is hard-capped (50 JPEG segments, 50 PNG chunks, 100 ZIP
entries) and always advances its cursor, so malformed or self-referential
length fields cannot make it loop forever.

Raster images also get a header summary (format / width / height / mode)
via Pillow.  ``Image.open`` is lazy: it parses the header and stops, no
pixel data is decoded.
"""

import io
import logging
import warnings

from PIL import Image, UnidentifiedImageError

from .config import CarvingConfig, DEFAULT_CONFIG
from .entropy import (
    appears_compressed,
    calculate_entropy,
    contains_readable_strings,
    magic_bytes_string,
)
from .matcher import read_u16_be, read_u16_le, read_u32_be, read_u32_le
from .signatures import ZIP_FAMILY_EXTS, SignatureInfo

logger = logging.getLogger(__name__)

# JPEG markers that stand alone (no length field follows)
_STANDALONE_MARKERS = frozenset({0x01, 0xD8, 0xD9, *range(0xD0, 0xD8)})
_JPEG_SOS = 0xDA

# Formats Pillow can identify from their header
_PILLOW_EXTS = {"jpg", "png", "gif", "bmp", "tiff", "webp", "ico"}


def extract_metadata(
    data: bytes, sig: SignatureInfo, config: CarvingConfig = DEFAULT_CONFIG,
) -> dict:
    """Generic + format-specific metadata for one carved file."""
    metadata = {
        "entropy": calculate_entropy(data[:1024]),
        "has_strings": contains_readable_strings(data),
        "is_compressed": appears_compressed(data),
        "magic_bytes": magic_bytes_string(data),
    }

    ext = sig.extension
    if ext == "jpg" and len(data) > 10:
        metadata["jpeg"] = extract_jpeg_metadata(data, config.max_jpeg_segments)
    elif ext == "png" and len(data) > 20:
        metadata["png"] = extract_png_metadata(data, config.max_png_chunks)
    elif ext in ZIP_FAMILY_EXTS and len(data) > 30:
        metadata["zip"] = extract_zip_metadata(data, config.max_zip_entries)

    if ext in _PILLOW_EXTS:
        image_info = read_image_header(data)
        if image_info:
            metadata["image"] = image_info

    return metadata


def extract_jpeg_metadata(data: bytes, max_segments: int = 50) -> dict:
    """Marker segments after SOI, up to and including Start-Of-Scan."""
    segments = []
    offset = 2  # skip FF D8
    while offset < len(data) - 1 and len(segments) < max_segments:
        if data[offset] != 0xFF or data[offset + 1] == 0xFF:
            offset += 1
            continue

        marker = data[offset + 1]
        if marker in _STANDALONE_MARKERS:
            length = 0
        else:
            length = read_u16_be(data, offset + 2) or 0
        segments.append({
            "marker": f"0xFF{marker:02X}",
            "length": length,
            "offset": offset,
        })
        if marker == _JPEG_SOS:
            break
        offset += 2 + length

    return {"segments": segments}


def extract_png_metadata(data: bytes, max_chunks: int = 50) -> dict:
    """Chunk list after the 8-byte signature, up to and including IEND."""
    chunks = []
    offset = 8
    while offset < len(data) - 8 and len(chunks) < max_chunks:
        length = read_u32_be(data, offset)
        chunk_type = data[offset + 4:offset + 8].decode("latin-1")
        chunks.append({"type": chunk_type, "length": length, "offset": offset})
        if chunk_type == "IEND":
            break
        offset += 12 + length  # length + type + data + CRC

    return {"chunks": chunks}


def extract_zip_metadata(data: bytes, max_entries: int = 100) -> dict:
    """Entries from consecutive local file headers."""
    files = []
    offset = 0
    while offset < len(data) - 30 and len(files) < max_entries:
        if not data.startswith(b"PK\x03\x04", offset):
            break
        comp_size = read_u32_le(data, offset + 18)
        name_len = read_u16_le(data, offset + 26)
        extra_len = read_u16_le(data, offset + 28)

        name_end = offset + 30 + name_len
        if name_end <= len(data):
            filename = data[offset + 30:name_end].decode("utf-8", errors="replace")
            files.append({
                "filename": filename,
                "compressed_size": comp_size,
                "offset": offset,
            })
        offset = name_end + extra_len + comp_size

    return {"files": files}


def read_image_header(data: bytes) -> dict:
    """Format, dimensions and mode from the image header; ``{}`` if unreadable."""
    try:
        # Corrupt carved headers make Pillow warn (EXIF, DecompressionBomb)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore")
            with Image.open(io.BytesIO(data)) as img:
                width, height = img.size
                return {
                    "format": img.format,
                    "width": width,
                    "height": height,
                    "mode": img.mode,
                }
    except UnidentifiedImageError:
        logger.debug("Pillow could not identify image header (%d bytes)", len(data))
        return {}
    except Exception as e:
        logger.debug("Image header unreadable (%d bytes): %s", len(data), e)
        return {}
