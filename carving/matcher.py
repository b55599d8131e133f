"""
Byte Matcher — bounds-safe primitives over the raw input buffer.

Nothing in here raises on bad offsets: an out-of-range read is simply
"no match" (or ``None`` for the integer readers).  Every other module
reads header fields through these helpers.
"""

import struct
from typing import Optional

from .signatures import SignatureInfo

CONTEXT_WINDOW = 1024       # bytes decoded for context checks
PE_POINTER_OFFSET = 60      # e_lfanew in the DOS header

_U16_LE = struct.Struct("<H")
_U32_LE = struct.Struct("<I")
_U16_BE = struct.Struct(">H")
_U32_BE = struct.Struct(">I")


def _read(fmt: struct.Struct, data: bytes, offset: int) -> Optional[int]:
    if offset < 0 or offset + fmt.size > len(data):
        return None
    return fmt.unpack_from(data, offset)[0]


def read_u16_le(data: bytes, offset: int) -> Optional[int]:
    return _read(_U16_LE, data, offset)


def read_u32_le(data: bytes, offset: int) -> Optional[int]:
    return _read(_U32_LE, data, offset)


def read_u16_be(data: bytes, offset: int) -> Optional[int]:
    return _read(_U16_BE, data, offset)


def read_u32_be(data: bytes, offset: int) -> Optional[int]:
    return _read(_U32_BE, data, offset)


def matches(data: bytes, offset: int, pattern: bytes) -> bool:
    """True iff ``pattern`` sits at ``data[offset:]`` entirely in bounds."""
    if not pattern or offset < 0 or offset + len(pattern) > len(data):
        return False
    return data.startswith(pattern, offset)


def resolve_pe_header_offset(data: bytes, mz_offset: int) -> Optional[int]:
    """Absolute offset of the PE header referenced by the DOS header at ``mz_offset``."""
    pointer = read_u32_le(data, mz_offset + PE_POINTER_OFFSET)
    if pointer is None:
        return None
    return mz_offset + pointer


def secondary_check(data: bytes, primary_offset: int, sig: SignatureInfo) -> bool:
    """Verify the variant's second anchor.  Variants without one always pass."""
    if sig.secondary is None:
        return True
    if sig.dynamic_secondary:
        # Two steps: read the pointer, then compare at the resolved offset
        anchor = resolve_pe_header_offset(data, primary_offset)
        if anchor is None:
            return False
    else:
        anchor = primary_offset + sig.secondary_offset
    return matches(data, anchor, sig.secondary)


def context_check(data: bytes, offset: int, text: str) -> bool:
    """Case-insensitive substring test over the next 1 KB, decoded permissively."""
    if offset < 0 or offset >= len(data):
        return False
    window = data[offset:offset + CONTEXT_WINDOW]
    decoded = window.decode("utf-8", errors="replace")
    return text.lower() in decoded.lower()


def variant_matches(data: bytes, start: int, sig: SignatureInfo) -> bool:
    """Full acceptance test of one variant at a candidate file start."""
    if not matches(data, start + sig.offset, sig.magic):
        return False
    if sig.secondary is not None and not secondary_check(data, start, sig):
        return False
    if sig.context is not None and not context_check(data, start, sig.context):
        return False
    return True
