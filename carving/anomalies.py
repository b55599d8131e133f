"""
Anomaly Detectors — independent, read-only, whole-buffer passes.

  • Polyglot   — several signatures in the first 4 KB (at 0 or past 512)
  • Overlay    — data appended after a PE image's last section
  • Hidden data — base64 runs, high-entropy blocks, execution indicators,
                  URLs / IPv4 addresses
  • Gaps       — long runs of 0x00

Each pass has a hard cap on what it reports, so a hostile buffer (say,
megabytes of base64 or a thousand "MZ" headers) cannot blow up the result.
"""

import base64
import binascii
import logging
import re
from typing import Optional

from .config import CarvingConfig, DEFAULT_CONFIG
from .entropy import calculate_entropy
from .models import HiddenDataReport, OverlayData, PolyglotAnalysis, SuspiciousRegion
from .pe import PE32_MAGIC, PE32_PLUS_MAGIC, find_pe_header, optional_header_magic, parse_sections
from .signatures import ALL_VARIANTS

logger = logging.getLogger(__name__)

PE_HEADER_ROOM = 150

# Execution indicators: (label, pattern)
SUSPICIOUS_PATTERNS = tuple(
    (label, re.compile(pattern, re.IGNORECASE))
    for label, pattern in (
        ("eval(", rb"eval\s*\("),
        ("exec(", rb"exec\s*\("),
        ("system(", rb"system\s*\("),
        ("shell_exec", rb"shell_exec"),
        ("cmd.exe", rb"cmd\.exe"),
        ("powershell", rb"powershell"),
        ("base64_decode", rb"base64_decode"),
        ("javascript:", rb"javascript:"),
        ("vbscript:", rb"vbscript:"),
        ("CreateObject", rb"CreateObject"),
        ("WScript.Shell", rb"WScript\.Shell"),
        ("document.write", rb"document\.write"),
    )
)

_URL_RE = re.compile(rb"https?://[^\s<>\"'\x00-\x1f\x7f-\xff]+", re.IGNORECASE)
_IPV4_RE = re.compile(rb"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b")


def _decode(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace")


# ══════════════════════════════════════════════════════════════
#  Polyglot
# ══════════════════════════════════════════════════════════════

def analyze_polyglot(
    data: bytes, config: CarvingConfig = DEFAULT_CONFIG,
) -> Optional[PolyglotAnalysis]:
    """Flag buffers carrying ≥ 2 distinct "{type}@{offset}" signatures in the head."""
    window = min(len(data), config.polyglot_window)
    hits = []
    for index, sig in enumerate(ALL_VARIANTS):
        hi = window + sig.offset + len(sig.magic) - 1
        pos = data.find(sig.magic, sig.offset, hi)
        while pos != -1:
            start = pos - sig.offset
            if start == 0 or start > config.polyglot_embedded_min_offset:
                hits.append((start, index, f"{sig.file_type}@{start}"))
            pos = data.find(sig.magic, pos + 1, hi)

    labels = list(dict.fromkeys(label for _, _, label in sorted(hits)))
    if len(labels) < 2:
        return None

    return PolyglotAnalysis(
        is_polyglot=True,
        detected_types=labels,
        risk_level="HIGH" if len(labels) > config.polyglot_high_risk_types else "MEDIUM",
        analysis="Multiple file signatures detected - possible polyglot file",
    )


# ══════════════════════════════════════════════════════════════
#  PE overlay
# ══════════════════════════════════════════════════════════════

def find_overlays(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[OverlayData]:
    """Every PE image with more than ``overlay_min_size`` trailing bytes, in buffer order."""
    overlays = []
    pos = data.find(b"MZ")
    while pos != -1 and pos < len(data) - 64:
        overlay = _overlay_for(data, pos, config)
        if overlay is not None:
            overlays.append(overlay)
        pos = data.find(b"MZ", pos + 1)
    return overlays


def detect_overlay(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> Optional[OverlayData]:
    """Overlay of the LAST qualifying PE image in the buffer."""
    overlays = find_overlays(data, config)
    return overlays[-1] if overlays else None


def _overlay_for(data: bytes, mz_offset: int, config: CarvingConfig) -> Optional[OverlayData]:
    pe_offset = find_pe_header(data, mz_offset)
    if pe_offset is None or pe_offset + PE_HEADER_ROOM >= len(data):
        return None

    sections = parse_sections(data, pe_offset, config.pe_max_sections)
    if not sections:
        return None

    pe_end = mz_offset + max(s.raw_end for s in sections)
    overlay_size = len(data) - pe_end
    if overlay_size <= config.overlay_min_size:
        return None

    magic = optional_header_magic(data, pe_offset)
    pe_format = {PE32_MAGIC: "PE32", PE32_PLUS_MAGIC: "PE32+"}.get(magic, "unknown")
    entropy = calculate_entropy(data[pe_end:pe_end + config.overlay_entropy_sample])
    logger.info(
        "PE at 0x%X (%s): %d overlay bytes at 0x%X, entropy %.2f",
        mz_offset, pe_format, overlay_size, pe_end, entropy,
    )
    return OverlayData(
        pe_start_offset=mz_offset,
        pe_end_offset=pe_end,
        overlay_offset=pe_end,
        overlay_size=overlay_size,
        entropy=entropy,
        pe_format=pe_format,
        analysis=(
            "Large overlay - possible packed malware"
            if overlay_size > config.overlay_large_size
            else "Small overlay - possibly legitimate"
        ),
    )


# ══════════════════════════════════════════════════════════════
#  Hidden data
# ══════════════════════════════════════════════════════════════

def detect_hidden_data(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> HiddenDataReport:
    report = HiddenDataReport(
        base64_strings=find_base64_patterns(data, config),
        encrypted_regions=find_high_entropy_regions(data, config),
        suspicious_strings=find_suspicious_strings(data, config),
        hidden_urls=find_hidden_urls(data, config),
    )
    exceeded = sum((
        len(report.base64_strings) > 5,
        len(report.encrypted_regions) > 3,
        len(report.suspicious_strings) > 0,
        len(report.hidden_urls) > 0,
    ))
    report.risk_score = 25 * exceeded
    return report


def is_valid_base64(candidate: bytes) -> bool:
    try:
        return base64.b64encode(base64.b64decode(candidate, validate=True)) == candidate
    except (binascii.Error, ValueError):
        return False


def find_base64_patterns(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[dict]:
    pattern = re.compile(rb"[A-Za-z0-9+/]{%d,}={0,2}" % config.base64_min_length)
    found = []
    for match in pattern.finditer(data):
        if len(found) >= config.max_base64_strings:
            break
        text = match.group().decode("ascii")
        found.append({
            "offset": match.start(),
            "length": len(text),
            "content": text[:50] + ("..." if len(text) > 50 else ""),
            "is_valid": is_valid_base64(match.group()),
        })
    return found


def find_high_entropy_regions(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[dict]:
    block = config.entropy_block_size
    regions = []
    for offset in range(0, len(data) - block + 1, block):
        entropy = calculate_entropy(data[offset:offset + block])
        if entropy > config.high_entropy_threshold:
            regions.append({
                "offset": offset,
                "size": block,
                "entropy": entropy,
                "classification": (
                    "Likely Encrypted"
                    if entropy > config.encrypted_entropy_threshold
                    else "High Randomness"
                ),
            })
            if len(regions) >= config.max_encrypted_regions:
                break
    return regions


def find_suspicious_strings(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[dict]:
    findings = []
    for label, pattern in SUSPICIOUS_PATTERNS:
        for match in pattern.finditer(data):
            if len(findings) >= config.max_suspicious_strings:
                return findings
            findings.append({
                "pattern": label,
                "offset": match.start(),
                "context": _decode(data[max(0, match.start() - 20):match.end() + 20]),
            })
    return findings


def find_hidden_urls(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[dict]:
    urls = []
    for match in _URL_RE.finditer(data):
        if len(urls) >= config.max_urls:
            break
        urls.append({"type": "URL", "value": _decode(match.group()), "offset": match.start()})
    for match in _IPV4_RE.finditer(data):
        if len(urls) >= config.max_url_and_ip_hits:
            break
        urls.append({"type": "IP Address", "value": _decode(match.group()), "offset": match.start()})
    return urls


# ══════════════════════════════════════════════════════════════
#  Null-byte gaps
# ══════════════════════════════════════════════════════════════

def analyze_file_gaps(data: bytes, config: CarvingConfig = DEFAULT_CONFIG) -> list[SuspiciousRegion]:
    """Maximal 0x00 runs of at least ``null_gap_min_size`` bytes, first ``max_null_gaps``."""
    run = re.compile(rb"\x00{%d,}" % config.null_gap_min_size)
    gaps = []
    for match in run.finditer(data):
        gaps.append(SuspiciousRegion(
            offset=match.start(),
            size=match.end() - match.start(),
            type="Null Bytes Gap",
            entropy=0.0,
        ))
        if len(gaps) >= config.max_null_gaps:
            break
    return gaps
