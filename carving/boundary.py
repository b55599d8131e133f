"""
Boundary Resolver — where does a carved file END?

Resolution order for a candidate at ``start``:
  1. PDF          — LAST "%%EOF" in the buffer (backward search; incremental
                    updates append several %%EOF markers and the first one
                    is rarely the real end)
  2. footer       — first footer occurrence after the magic (JPEG, PNG, GIF)
  3. ZIP family   — End-Of-Central-Directory + 22 + comment length
  4. PE           — SizeOfImage from the optional header, if 0 < size < 100 MB
  5. RIFF         — chunk size at +4 (WAV, AVI, WebP)
  6. fallback     — next known signature within a 10 MB window, else the
                    window end

SEARCH CACHE
────────────
A ``BoundaryResolver`` is bound to one buffer.  Every forward search goes
through ``_next``, which remembers, per pattern, the position it searched
from and what it found.  The engine's candidates only move forward, so a
cached hit stays the answer until a candidate passes it, and a miss stays a
miss for good.  Each pattern therefore walks the buffer about once per
carving pass, no matter how many spurious candidates ask for it.  The last
"%%EOF" of a buffer never changes and is looked up once.

Every path is bounded by the buffer length or the fallback window, so the
resolver terminates on any input.
"""

import logging
from typing import NamedTuple

from .config import CarvingConfig, DEFAULT_CONFIG
from .matcher import read_u16_le, read_u32_le, resolve_pe_header_offset
from .pe import read_size_of_image
from .signatures import RIFF_EXTS, ZIP_FAMILY_EXTS, SignatureInfo, iter_variants

logger = logging.getLogger(__name__)

PDF_EOF = b"%%EOF"
ZIP_EOCD = b"PK\x05\x06"
ZIP_EOCD_SIZE = 22

# Distinct (magic, offset) probes for the next-signature search
_MAGIC_PROBES = tuple(dict.fromkeys((v.magic, v.offset) for v in iter_variants()))

_UNSEARCHED = object()


class FileEnd(NamedTuple):
    end: int
    method: str     # "pdf-eof", "footer", "zip-eocd", "pe-image", "riff", "next-signature", "window"


class BoundaryResolver:
    """End-of-file resolution over one buffer, with a forward-search cache."""

    def __init__(self, data: bytes, config: CarvingConfig = DEFAULT_CONFIG):
        self.data = data
        self.config = config
        self._hits: dict[bytes, tuple[int, int]] = {}  # pattern -> (searched_from, pos)
        self._last_eof = _UNSEARCHED
        # Buffer searches performed and bytes they walked over
        self.searches = 0
        self.bytes_searched = 0

    def _next(self, pattern: bytes, lo: int) -> int:
        """First occurrence of ``pattern`` at or after ``lo``, or -1."""
        cached = self._hits.get(pattern)
        if cached is not None:
            searched_from, pos = cached
            if searched_from <= lo and (pos == -1 or pos >= lo):
                return pos

        pos = self.data.find(pattern, lo)
        self._hits[pattern] = (lo, pos)
        self.searches += 1
        stop = pos + len(pattern) if pos != -1 else len(self.data)
        self.bytes_searched += max(0, stop - lo)
        return pos

    # ── Dispatch ──

    def file_end(self, start: int, sig: SignatureInfo) -> FileEnd:
        """Resolve the end offset (exclusive) of the file whose magic matched at ``start``."""
        sig_end = start + sig.span

        if sig.extension == "pdf":
            return self.pdf_end(start, sig_end)

        if sig.footer:
            pos = self._next(sig.footer, sig_end)
            if pos != -1:
                return FileEnd(pos + len(sig.footer), "footer")

        if sig.extension in ZIP_FAMILY_EXTS:
            return self.zip_end(start)
        if sig.extension == "exe":
            return self.pe_end(start)
        if sig.extension in RIFF_EXTS:
            return self.riff_end(start)

        return self.next_signature_or_end(start + self.config.fallback_skip)

    # ── Format-specific ends ──

    def pdf_end(self, start: int, sig_end: int) -> FileEnd:
        if self._last_eof is _UNSEARCHED:
            self._last_eof = self.data.rfind(PDF_EOF)
            self.searches += 1
            self.bytes_searched += len(self.data)
        if self._last_eof != -1 and self._last_eof >= sig_end:
            return FileEnd(self._last_eof + len(PDF_EOF), "pdf-eof")
        return self.next_signature_or_end(start + self.config.fallback_skip)

    def zip_end(self, start: int) -> FileEnd:
        """EOCD offset + 22 + comment length (u16 LE at EOCD+20)."""
        pos = self._next(ZIP_EOCD, start)
        # An EOCD cut off by the buffer end leaves no complete one after it
        if pos != -1 and pos + ZIP_EOCD_SIZE <= len(self.data):
            comment_len = read_u16_le(self.data, pos + 20)
            return FileEnd(min(len(self.data), pos + ZIP_EOCD_SIZE + comment_len), "zip-eocd")
        return self.next_signature_or_end(start + self.config.fallback_skip)

    def pe_end(self, start: int) -> FileEnd:
        pe_offset = resolve_pe_header_offset(self.data, start)
        if pe_offset is not None:
            size_of_image = read_size_of_image(self.data, pe_offset)
            if size_of_image is not None and 0 < size_of_image < self.config.pe_max_image_size:
                return FileEnd(min(len(self.data), start + size_of_image), "pe-image")
            logger.debug("PE at 0x%X: implausible SizeOfImage %s", start, size_of_image)
        return self.next_signature_or_end(start + self.config.pe_fallback_skip)

    def riff_end(self, start: int) -> FileEnd:
        chunk_size = read_u32_le(self.data, start + 4)
        if chunk_size is not None and chunk_size >= 4 and start + 8 + chunk_size <= len(self.data):
            return FileEnd(start + 8 + chunk_size, "riff")
        return self.next_signature_or_end(start + self.config.fallback_skip)

    def next_signature_or_end(self, scan_start: int) -> FileEnd:
        """
        Earliest file start in ``[scan_start, scan_start + window]`` where any
        known magic begins; the window end (clamped to the buffer) if none does.
        """
        window_end = min(len(self.data), scan_start + self.config.fallback_window)
        if scan_start >= window_end:
            return FileEnd(window_end, "window")

        best = None
        for magic, offset in _MAGIC_PROBES:
            pos = self._next(magic, scan_start + offset)
            if pos == -1:
                continue
            candidate = pos - offset
            if candidate <= window_end and (best is None or candidate < best):
                best = candidate
        if best is not None:
            return FileEnd(best, "next-signature")
        return FileEnd(window_end, "window")


# ══════════════════════════════════════════════════════════════
#  One-shot helpers (fresh resolver per call)
# ══════════════════════════════════════════════════════════════

def find_file_end(
    data: bytes,
    start: int,
    sig: SignatureInfo,
    config: CarvingConfig = DEFAULT_CONFIG,
) -> FileEnd:
    return BoundaryResolver(data, config).file_end(start, sig)


def find_pdf_end(
    data: bytes, start: int, sig_end: int, config: CarvingConfig = DEFAULT_CONFIG,
) -> FileEnd:
    return BoundaryResolver(data, config).pdf_end(start, sig_end)


def find_zip_end(data: bytes, start: int, config: CarvingConfig = DEFAULT_CONFIG) -> FileEnd:
    return BoundaryResolver(data, config).zip_end(start)


def find_riff_end(data: bytes, start: int, config: CarvingConfig = DEFAULT_CONFIG) -> FileEnd:
    return BoundaryResolver(data, config).riff_end(start)


def find_next_signature_or_end(
    data: bytes, scan_start: int, config: CarvingConfig = DEFAULT_CONFIG,
) -> FileEnd:
    return BoundaryResolver(data, config).next_signature_or_end(scan_start)
