"""
Carving Configuration — every cap and threshold the engine relies on.

All limits are hard caps: they are what guarantees the scan terminates in
bounded time and memory on adversarial input (repeating bytes, forged
length fields, thousands of spurious 2-byte magic hits).
"""

from dataclasses import dataclass

MB = 1024 * 1024


@dataclass
class CarvingConfig:
    """Configuration for one analysis run."""
    # ── Carved file bounds ──
    min_file_size: int = 10
    max_file_size: int = 50 * MB

    # ── Boundary resolution ──
    fallback_window: int = 10 * MB        # next-signature search window
    fallback_skip: int = 100              # bytes skipped before next-signature search
    pe_fallback_skip: int = 1024
    pe_max_image_size: int = 100 * MB     # SizeOfImage sanity limit

    # ── Carve budget (total bytes copied into CarvedFile.data) ──
    max_total_carved_bytes: int = 512 * MB

    # ── Polyglot detection ──
    polyglot_window: int = 4096
    polyglot_embedded_min_offset: int = 512
    polyglot_high_risk_types: int = 3     # > this many labels → HIGH

    # ── PE overlay ──
    overlay_min_size: int = 1024
    overlay_large_size: int = 100_000
    overlay_entropy_sample: int = 1024
    pe_max_sections: int = 20
    max_overlay_events: int = 20          # timeline entries, last PEs kept

    # ── Hidden data ──
    base64_min_length: int = 20
    max_base64_strings: int = 50
    entropy_block_size: int = 1024
    high_entropy_threshold: float = 7.5
    encrypted_entropy_threshold: float = 7.8
    max_encrypted_regions: int = 20
    max_suspicious_strings: int = 20
    max_urls: int = 50
    max_url_and_ip_hits: int = 100

    # ── Gap analysis ──
    null_gap_min_size: int = 64
    max_null_gaps: int = 10

    # ── Metadata extraction caps ──
    max_jpeg_segments: int = 50
    max_png_chunks: int = 50
    max_zip_entries: int = 100

    # ── Scan loop ──
    cancel_check_interval: int = 256      # outer iterations between cancel checks
    progress_interval: int = 4096         # outer iterations between progress callbacks

    def __post_init__(self):
        if self.min_file_size < 1:
            raise ValueError("min_file_size must be >= 1")
        if self.max_file_size < self.min_file_size:
            raise ValueError("max_file_size must be >= min_file_size")
        if self.fallback_window <= 0:
            raise ValueError("fallback_window must be positive")
        if self.entropy_block_size <= 0:
            raise ValueError("entropy_block_size must be positive")
        if self.cancel_check_interval < 1 or self.progress_interval < 1:
            raise ValueError("scan loop intervals must be >= 1")


DEFAULT_CONFIG = CarvingConfig()
