"""
Entropy & byte-text helpers shared by the scorer, the metadata extractors
and the anomaly detectors.
"""

import math
from collections import Counter

PRINTABLE_SAMPLE = 1024
COMPRESSED_ENTROPY = 7.0


def calculate_entropy(data: bytes) -> float:
    """Shannon entropy of a byte sequence (0.0–8.0)."""
    if not data:
        return 0.0
    length = len(data)
    entropy = 0.0
    for count in Counter(data).values():
        p = count / length
        entropy -= p * math.log2(p)
    return entropy


def contains_readable_strings(data: bytes) -> bool:
    """More than 70% printable ASCII (plus tab/CR/LF) in the first 1 KB."""
    sample = data[:PRINTABLE_SAMPLE]
    if not sample:
        return False
    printable = sum(1 for b in sample if 32 <= b <= 126 or b in (9, 10, 13))
    return printable / len(sample) > 0.7


def appears_compressed(data: bytes) -> bool:
    return calculate_entropy(data[:PRINTABLE_SAMPLE]) > COMPRESSED_ENTROPY


def hex_preview(data: bytes) -> str:
    """Uppercase, space-separated hex: ``"FF D8 FF E0"``."""
    return data.hex(" ").upper()


def magic_bytes_string(data: bytes, count: int = 16) -> str:
    return " ".join(f"0x{b:02x}" for b in data[:count])


def human_size(nbytes: int) -> str:
    size = float(nbytes)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
