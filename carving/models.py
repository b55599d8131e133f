"""
Analysis data model — everything the engine hands to its consumers.

``AnalysisResult.to_dict()`` is the hand-off format for external
renderers: plain dicts / lists / numbers / strings only.  Carved bytes are
left out unless explicitly requested.
"""

from dataclasses import asdict, dataclass, field
from typing import Optional

from .entropy import human_size
from .timeline import ForensicTimelineEntry, ScanStatistics


@dataclass
class SourceFile:
    """The analysed input as described by the file-reading collaborator."""
    name: str = ""
    size: int = 0
    type: str = ""


@dataclass
class CarvedFile:
    """One embedded file carved out of the input buffer."""
    id: str
    file_type: str                  # registry key, e.g. "JPEG"
    description: str
    extension: str
    category: str
    offset: int                     # byte offset in the input buffer
    size: int
    data: bytes                     # owned copy of buffer[offset:offset+size]
    confidence: int                 # 0–100
    hex_preview: str                # first 64 bytes
    metadata: dict = field(default_factory=dict)
    boundary: str = ""              # how the end offset was resolved

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def size_human(self) -> str:
        return human_size(self.size)

    @property
    def display_name(self) -> str:
        return f"carved_{self.offset:08X}.{self.extension}"

    def to_dict(self, include_data: bool = False) -> dict:
        d = {
            "id": self.id,
            "type": self.file_type,
            "description": self.description,
            "extension": self.extension,
            "category": self.category,
            "offset": self.offset,
            "offset_hex": f"0x{self.offset:X}",
            "size": self.size,
            "confidence": self.confidence,
            "hex_preview": self.hex_preview,
            "metadata": self.metadata,
            "boundary": self.boundary,
            "display_name": self.display_name,
        }
        if include_data:
            d["data"] = self.data
        return d


@dataclass
class PolyglotAnalysis:
    is_polyglot: bool
    detected_types: list[str]       # "{type}@{offset}" labels
    risk_level: str                 # "HIGH" or "MEDIUM"
    analysis: str


@dataclass
class OverlayData:
    """Bytes appended past a PE image's last section."""
    pe_start_offset: int
    pe_end_offset: int
    overlay_offset: int
    overlay_size: int
    entropy: float
    pe_format: str                  # "PE32", "PE32+" or "unknown"
    analysis: str


@dataclass
class HiddenDataReport:
    base64_strings: list[dict] = field(default_factory=list)
    encrypted_regions: list[dict] = field(default_factory=list)
    suspicious_strings: list[dict] = field(default_factory=list)
    hidden_urls: list[dict] = field(default_factory=list)
    risk_score: int = 0

    @property
    def has_findings(self) -> bool:
        return self.risk_score > 0


@dataclass
class SuspiciousRegion:
    offset: int
    size: int
    type: str
    entropy: float


@dataclass
class AnalysisResult:
    original_file: SourceFile
    carved_files: list[CarvedFile] = field(default_factory=list)
    overlay_data: Optional[OverlayData] = None
    polyglot_analysis: Optional[PolyglotAnalysis] = None
    forensic_timeline: list[ForensicTimelineEntry] = field(default_factory=list)
    suspicious_regions: list[SuspiciousRegion] = field(default_factory=list)
    hidden_data: HiddenDataReport = field(default_factory=HiddenDataReport)
    statistics: ScanStatistics = field(default_factory=ScanStatistics)
    cancelled: bool = False

    def to_dict(self, include_data: bool = False) -> dict:
        return {
            "original_file": asdict(self.original_file),
            "carved_files": [f.to_dict(include_data) for f in self.carved_files],
            "overlay_data": asdict(self.overlay_data) if self.overlay_data else None,
            "polyglot_analysis": (
                asdict(self.polyglot_analysis) if self.polyglot_analysis else None
            ),
            "forensic_timeline": [asdict(e) for e in self.forensic_timeline],
            "suspicious_regions": [asdict(r) for r in self.suspicious_regions],
            "hidden_data": asdict(self.hidden_data),
            "statistics": asdict(self.statistics),
            "cancelled": self.cancelled,
        }
