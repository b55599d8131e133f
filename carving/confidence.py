"""
Confidence Scorer — heuristic 0–100 score for a carved region.

Score composition:
  • 50   base
  • +20  plausible size (100 B < size < 1 MB)   /  +10 large (> 1 MB)
  • +30  region tail equals the descriptor footer
  • +15  at most, from a bounded per-format structural walk (ZIP, PDF, JPEG)

Structural validators never propagate exceptions: a validator fault is
logged and contributes 0.  They only look at a bounded prefix/suffix or a
capped number of entries, so scoring is linear in the carved size at worst.
"""

import logging

from .config import CarvingConfig, DEFAULT_CONFIG, MB
from .matcher import read_u16_le, read_u32_le
from .signatures import SignatureInfo

logger = logging.getLogger(__name__)

BASE_SCORE = 50
SMALL_SIZE_BONUS = 20
LARGE_SIZE_BONUS = 10
FOOTER_BONUS = 30
MAX_STRUCTURE_BONUS = 15

_LOCAL_HEADER = b"PK\x03\x04"
_EOCD = b"PK\x05\x06"


def calculate_confidence(
    data: bytes, sig: SignatureInfo, config: CarvingConfig = DEFAULT_CONFIG,
) -> int:
    """Score a carved region against the variant that matched it."""
    confidence = BASE_SCORE

    size = len(data)
    if 100 < size < MB:
        confidence += SMALL_SIZE_BONUS
    if size > MB:
        confidence += LARGE_SIZE_BONUS

    if sig.footer and size >= len(sig.footer) and data.endswith(sig.footer):
        confidence += FOOTER_BONUS

    validator = _VALIDATORS.get(sig.extension)
    if validator is not None:
        try:
            confidence += min(MAX_STRUCTURE_BONUS, validator(data, config))
        except Exception as e:
            logger.debug("Structure validation of .%s failed: %s", sig.extension, e)

    return max(0, min(100, confidence))


# ══════════════════════════════════════════════════════════════
#  Structural validators: each returns a bonus in [0, 15]
# ══════════════════════════════════════════════════════════════

def validate_zip_structure(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> int:
    """+15 for an EOCD record, +2 per sane local file header (capped walk)."""
    score = 0
    eocd = data.rfind(_EOCD)
    if eocd != -1 and eocd + 22 <= len(data):
        score += 15

    offset = 0
    entries = 0
    while offset < len(data) - 30 and entries < config.max_zip_entries:
        if not data.startswith(_LOCAL_HEADER, offset):
            break
        name_len = read_u16_le(data, offset + 26)
        extra_len = read_u16_le(data, offset + 28)
        comp_size = read_u32_le(data, offset + 18)
        if name_len >= 256 or extra_len >= 1024:
            break
        score += 2
        entries += 1
        offset += 30 + name_len + extra_len + comp_size

    return min(MAX_STRUCTURE_BONUS, score)


def validate_pdf_structure(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> int:
    """Keyword presence in the head, "%%EOF" in the last 100 bytes."""
    head = data[:1024]
    score = 0
    if b"%PDF-" in head:
        score += 10
    for keyword in (b"obj", b"endobj", b"xref", b"trailer"):
        if keyword in head:
            score += 5
    if b"%%EOF" in data[-100:]:
        score += 10
    return min(MAX_STRUCTURE_BONUS, score)


def validate_jpeg_structure(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> int:
    """Marker density in the first 1 KB (≤ 10) plus a trailing EOI (+5)."""
    markers = 0
    for i in range(min(len(data) - 1, 1024)):
        if data[i] == 0xFF and data[i + 1] not in (0x00, 0xFF):
            markers += 1
            if markers >= 10:
                break
    score = markers
    if data.endswith(b"\xFF\xD9"):
        score += 5
    return min(MAX_STRUCTURE_BONUS, score)


_VALIDATORS = {
    "zip": validate_zip_structure,
    "jar": validate_zip_structure,
    "docx": validate_zip_structure,
    "pdf": validate_pdf_structure,
    "jpg": validate_jpeg_structure,
}
