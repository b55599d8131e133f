"""
Carving Engine — single linear scan over an in-memory buffer.

HOW THE SCAN WORKS
──────────────────
1.  A cursor walks ``[0, N-16)``.
2.  At each position every signature variant is tried in registry order.
    The first variant whose magic, secondary anchor and context check all
    pass AND whose resolved size lies within ``[min_file_size,
    max_file_size]`` wins.
3.  The winning region is copied into a ``CarvedFile`` (scored, previewed,
    metadata extracted) and the cursor jumps to its end.  Because the
    cursor only ever moves forward to a resolved end, carved files never
    overlap.
4.  With no accepted variant the cursor advances by one byte.

Probing every variant at every byte in Python would cost ~50 calls per
byte, so the loop keeps, per variant, the next position where its magic
occurs (``bytes.find``) and jumps straight to the nearest one.  The
``signatures_checked`` counter still reports the (offset, variant) probes
the byte-by-byte loop would have made, so statistics do not depend on
this shortcut.

After carving, the anomaly passes (polyglot, PE overlay, hidden data,
null gaps) each read the whole buffer independently.
"""

import logging
import mimetypes
import os
import time
from typing import Callable, Optional

from .anomalies import analyze_file_gaps, analyze_polyglot, detect_hidden_data, find_overlays
from .boundary import BoundaryResolver
from .config import CarvingConfig
from .confidence import calculate_confidence
from .entropy import hex_preview, human_size
from .matcher import context_check, secondary_check
from .metadata import extract_metadata
from .models import AnalysisResult, CarvedFile, SourceFile
from .signatures import ALL_VARIANTS, SignatureInfo
from .timeline import ForensicTimeline, ScanProgress, ScanStatistics

logger = logging.getLogger(__name__)

SCAN_TAIL = 16          # bytes left unscanned at the end of the buffer
HEX_PREVIEW_BYTES = 64

_NO_HIT = float("inf")


class CarvingError(RuntimeError):
    """The input could not be analysed at all."""


class CarvingEngine:
    """
    Embedded-file carving and forensic anomaly analysis.

    Usage:
        engine = CarvingEngine()
        result = engine.analyze_file("suspicious.bin")
        for cf in result.carved_files:
            print(cf.file_type, hex(cf.offset), cf.size, cf.confidence)
    """

    def __init__(
        self,
        config: Optional[CarvingConfig] = None,
        clock: Optional[Callable[[], str]] = None,
    ):
        self.config = config or CarvingConfig()
        self._clock = clock
        self._on_progress: Optional[Callable[[ScanProgress], None]] = None
        self._cancel_requested = False

    def set_progress_callback(self, cb):
        self._on_progress = cb

    def cancel(self):
        """Request the running scan to stop at its next cancellation check."""
        self._cancel_requested = True

    # ─── Entry points ────────────────────────────────────────

    def analyze_file(self, path: str) -> AnalysisResult:
        """Read ``path`` once, then analyse its bytes."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            raise CarvingError(f"Cannot read {path}: {exc}") from exc

        declared_type = mimetypes.guess_type(path)[0] or ""
        return self.analyze_bytes(
            data, name=os.path.basename(path), declared_type=declared_type,
        )

    def analyze_bytes(
        self,
        data: bytes,
        name: str = "",
        declared_type: str = "",
    ) -> AnalysisResult:
        """Full analysis: carving pass followed by every anomaly pass."""
        data = _as_bytes(data)
        self._cancel_requested = False
        started = time.perf_counter()

        timeline = ForensicTimeline(self._clock)
        result = AnalysisResult(
            original_file=SourceFile(name=name, size=len(data), type=declared_type),
            statistics=ScanStatistics(total_scanned=len(data)),
        )
        timeline.add("Analysis Started", f"Scanning {len(data):,} bytes")
        logger.info("Analysis started: %s (%s)", name or "<buffer>", human_size(len(data)))

        try:
            result.carved_files = self._perform_carving(data, result, timeline)
            if not result.cancelled:
                self._run_anomaly_passes(data, result, timeline)
        except Exception as exc:
            logger.error("File carving failed: %s", exc, exc_info=True)
            raise CarvingError(f"File carving failed: {exc}") from exc

        stats = result.statistics
        stats.processing_time = time.perf_counter() - started
        timeline.add(
            "Analysis Complete",
            f"Processed {stats.signatures_checked} signatures, "
            f"carved {stats.files_carved} files",
        )
        result.forensic_timeline = timeline.entries
        logger.info(
            "Analysis complete: %d file(s) carved, %s recovered in %.2fs%s",
            stats.files_carved, human_size(stats.data_recovered),
            stats.processing_time, " (cancelled)" if result.cancelled else "",
        )
        return result

    def carve(self, data: bytes) -> list[CarvedFile]:
        """Carving pass only — no anomaly detection."""
        data = _as_bytes(data)
        self._cancel_requested = False
        result = AnalysisResult(
            original_file=SourceFile(size=len(data)),
            statistics=ScanStatistics(total_scanned=len(data)),
        )
        timeline = ForensicTimeline(self._clock)
        return self._perform_carving(data, result, timeline)

    # ─── Carving pass ────────────────────────────────────────

    def _perform_carving(
        self,
        data: bytes,
        result: AnalysisResult,
        timeline: ForensicTimeline,
    ) -> list[CarvedFile]:
        cfg = self.config
        stats = result.statistics
        carved: list[CarvedFile] = []
        n_variants = len(ALL_VARIANTS)
        limit = len(data) - SCAN_TAIL

        # next_hit[i]: smallest start >= cursor where variant i's magic occurs
        next_hit = [-1] * n_variants
        boundaries = BoundaryResolver(data, cfg)
        offset = 0
        iterations = 0
        copied = 0

        while offset < limit:
            iterations += 1
            if iterations % cfg.cancel_check_interval == 0 and self._cancel_requested:
                result.cancelled = True
                timeline.add("Analysis Cancelled", f"Carving stopped at offset 0x{offset:X}")
                logger.info("Carving cancelled at offset 0x%X", offset)
                break
            if self._on_progress and iterations % cfg.progress_interval == 0:
                self._notify_progress(len(data), offset, len(carved))

            for i, sig in enumerate(ALL_VARIANTS):
                if next_hit[i] < offset:
                    pos = data.find(sig.magic, offset + sig.offset)
                    next_hit[i] = pos - sig.offset if pos != -1 else _NO_HIT

            candidate = min(next_hit)
            if candidate >= limit:
                stats.signatures_checked += (limit - offset) * n_variants
                break
            stats.signatures_checked += (candidate - offset) * n_variants
            offset = candidate

            accepted = None
            for i, sig in enumerate(ALL_VARIANTS):
                stats.signatures_checked += 1
                if next_hit[i] != offset:
                    continue
                if sig.secondary is not None and not secondary_check(data, offset, sig):
                    continue
                if sig.context is not None and not context_check(data, offset, sig.context):
                    continue
                file_end = boundaries.file_end(offset, sig)
                size = file_end.end - offset
                if cfg.min_file_size <= size <= cfg.max_file_size:
                    accepted = (sig, file_end)
                    break
                logger.debug(
                    "%s at 0x%X rejected: size %d out of bounds",
                    sig.file_type, offset, size,
                )

            if accepted is None:
                offset += 1
                continue

            sig, file_end = accepted
            size = file_end.end - offset
            if copied + size > cfg.max_total_carved_bytes:
                logger.warning(
                    "Carve budget of %s exhausted at offset 0x%X — stopping",
                    human_size(cfg.max_total_carved_bytes), offset,
                )
                timeline.add(
                    "Carve Budget Exhausted",
                    f"Stopped carving at offset 0x{offset:X} after "
                    f"{human_size(copied)} of carved data",
                )
                break

            cf = self._materialize(data, offset, file_end.end, sig, file_end.method, len(carved))
            carved.append(cf)
            copied += size
            stats.record_carve(size)
            timeline.add(
                "File Carved",
                f"{sig.description} at offset 0x{offset:X}, size: {human_size(size)}",
            )
            offset = file_end.end

        if self._on_progress:
            self._notify_progress(len(data), max(0, min(offset, len(data))), len(carved))
        return carved

    def _materialize(
        self,
        data: bytes,
        start: int,
        end: int,
        sig: SignatureInfo,
        method: str,
        index: int,
    ) -> CarvedFile:
        chunk = data[start:end]     # owned copy
        try:
            metadata = extract_metadata(chunk, sig, self.config)
        except Exception as e:
            logger.debug("Metadata extraction failed for %s at 0x%X: %s", sig.file_type, start, e)
            metadata = {}

        return CarvedFile(
            id=f"carved_{index}",
            file_type=sig.file_type,
            description=sig.description,
            extension=sig.extension,
            category=sig.category,
            offset=start,
            size=len(chunk),
            data=chunk,
            confidence=calculate_confidence(chunk, sig, self.config),
            hex_preview=hex_preview(chunk[:HEX_PREVIEW_BYTES]),
            metadata=metadata,
            boundary=method,
        )

    # ─── Anomaly passes ──────────────────────────────────────

    def _run_anomaly_passes(
        self,
        data: bytes,
        result: AnalysisResult,
        timeline: ForensicTimeline,
    ):
        cfg = self.config

        result.polyglot_analysis = analyze_polyglot(data, cfg)
        if result.polyglot_analysis:
            timeline.add(
                "Polyglot Detected",
                f"Found {len(result.polyglot_analysis.detected_types)} different "
                f"file signatures - potential security risk",
            )

        overlays = find_overlays(data, cfg)
        for overlay in overlays[max(0, len(overlays) - cfg.max_overlay_events):]:
            timeline.add(
                "Overlay Data Found",
                f"PE file has {human_size(overlay.overlay_size)} overlay "
                f"data - entropy: {overlay.entropy:.2f}",
            )
        result.overlay_data = overlays[-1] if overlays else None

        result.hidden_data = detect_hidden_data(data, cfg)
        if result.hidden_data.has_findings:
            timeline.add(
                "Hidden Data Detected",
                f"Found {len(result.hidden_data.base64_strings)} base64 strings, "
                f"{len(result.hidden_data.encrypted_regions)} encrypted regions",
            )

        result.suspicious_regions = analyze_file_gaps(data, cfg)
        if result.suspicious_regions:
            timeline.add(
                "File Gaps Detected",
                f"Found {len(result.suspicious_regions)} gap regions with null bytes",
            )

    def _notify_progress(self, total: int, scanned: int, files: int):
        self._on_progress(ScanProgress(
            total_bytes=total,
            scanned_bytes=scanned,
            files_carved=files,
            is_cancelled=self._cancel_requested,
        ))


def _as_bytes(data) -> bytes:
    if isinstance(data, bytes):
        return data
    if isinstance(data, (bytearray, memoryview)):
        return bytes(data)
    raise CarvingError(f"Expected a byte buffer, got {type(data).__name__}")


def analyze_bytes(
    data: bytes,
    name: str = "",
    declared_type: str = "",
    config: Optional[CarvingConfig] = None,
) -> AnalysisResult:
    """Convenience wrapper: one-shot analysis with a fresh engine."""
    return CarvingEngine(config).analyze_bytes(data, name=name, declared_type=declared_type)
