"""
File Signature Registry — magic bytes for every carvable format.

DESIGN RATIONALE
────────────────
The registry is a fixed-order tuple of (format, variants).  The carving
engine walks it front to back and the FIRST variant that passes all of its
checks wins — there is no best-of-N scoring.  Order is therefore part of
the contract:

  • Formats that share a prefix with a more generic one come FIRST, so
    their context / secondary checks get a chance before the generic
    match swallows the region:
        JAR        PK\\x03\\x04 + "META-INF/" in the first 1 KB
        OFFICE_XML PK\\x03\\x04\\x14\\x00\\x06\\x00
        ZIP        PK\\x03\\x04
  • RIFF containers (WebP / AVI / WAV) share "RIFF" and are told apart by
    the sub-type tag at +8 (secondary check).
  • PE ("MZ") uses a *dynamic* secondary anchor: the "PE\\0\\0" header lives
    at the offset stored little-endian in bytes 60..63 of the DOS header.

Offset semantics: ``offset`` is where the magic sits RELATIVE to the start
of the file (TAR "ustar" at 257, ISO-BMFF "ftyp" at 4).  The carved file
itself always begins at the candidate start position.

Exported:
  • SignatureInfo       — one signature variant (frozen)
  • SIGNATURE_TABLE     — ordered tuple of (format, tuple[SignatureInfo, ...])
  • ALL_VARIANTS        — SIGNATURE_TABLE flattened, registry order
"""

from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class SignatureInfo:
    """Describes one signature variant of a carvable format."""
    file_type: str              # registry key, e.g. "JPEG", "ZIP"
    category: str               # "Image", "Archive", "Document", ...
    magic: bytes
    extension: str              # file extension without dot
    description: str
    offset: int = 0                       # magic position relative to file start
    footer: Optional[bytes] = None        # end-of-file marker
    secondary: Optional[bytes] = None     # second anchor bytes
    secondary_offset: int = 0             # second anchor position (fixed)
    dynamic_secondary: bool = False       # anchor offset read from header (PE)
    context: Optional[str] = None         # substring required in first 1 KB

    @property
    def span(self) -> int:
        """Bytes past the file start needed to test the magic."""
        return self.offset + len(self.magic)


def _variants(file_type: str, category: str, *rows: dict) -> tuple:
    return file_type, tuple(
        SignatureInfo(file_type=file_type, category=category, **row) for row in rows
    )


# ══════════════════════════════════════════════════════════════
#  I M A G E S
# ══════════════════════════════════════════════════════════════

_JPEG = _variants(
    "JPEG", "Image",
    dict(magic=b"\xFF\xD8\xFF", extension="jpg", footer=b"\xFF\xD9",
         description="JPEG Image"),
    dict(magic=b"\xFF\xD8\xFF\xE0", extension="jpg", footer=b"\xFF\xD9",
         description="JPEG Image (JFIF)"),
    dict(magic=b"\xFF\xD8\xFF\xE1", extension="jpg", footer=b"\xFF\xD9",
         description="JPEG Image (EXIF)"),
    dict(magic=b"\xFF\xD8\xFF\xE8", extension="jpg", footer=b"\xFF\xD9",
         description="JPEG Image (SPIFF)"),
)

_PNG = _variants(
    "PNG", "Image",
    dict(magic=b"\x89PNG\r\n\x1A\n", extension="png",
         footer=b"IEND\xAE\x42\x60\x82", description="PNG Image"),
)

_GIF = _variants(
    "GIF", "Image",
    dict(magic=b"GIF87a", extension="gif", footer=b"\x00\x3B",
         description="GIF Image (87a)"),
    dict(magic=b"GIF89a", extension="gif", footer=b"\x00\x3B",
         description="GIF Image (89a)"),
)

_BMP = _variants(
    "BMP", "Image",
    dict(magic=b"BM", extension="bmp", description="Bitmap Image"),
)

_TIFF = _variants(
    "TIFF", "Image",
    dict(magic=b"II\x2A\x00", extension="tiff",
         description="TIFF Image (Little Endian)"),
    dict(magic=b"MM\x00\x2A", extension="tiff",
         description="TIFF Image (Big Endian)"),
)

# ── RIFF containers: sub-type at +8 ──
_WEBP = _variants(
    "WEBP", "Image",
    dict(magic=b"RIFF", extension="webp", description="WebP Image",
         secondary=b"WEBP", secondary_offset=8),
)

_ICO = _variants(
    "ICO", "Image",
    dict(magic=b"\x00\x00\x01\x00", extension="ico", description="Windows Icon"),
)


# ══════════════════════════════════════════════════════════════
#  A R C H I V E S   (specific PK variants before generic ZIP)
# ══════════════════════════════════════════════════════════════

_JAR = _variants(
    "JAR", "Archive",
    dict(magic=b"PK\x03\x04", extension="jar", description="Java Archive",
         context="META-INF/"),
)

_OFFICE_XML = _variants(
    "OFFICE_XML", "Document",
    dict(magic=b"PK\x03\x04\x14\x00\x06\x00", extension="docx",
         description="Microsoft Office XML Document"),
)

_ZIP = _variants(
    "ZIP", "Archive",
    dict(magic=b"PK\x03\x04", extension="zip", description="ZIP Archive"),
    dict(magic=b"PK\x05\x06", extension="zip", description="ZIP Archive (Empty)"),
    dict(magic=b"PK\x07\x08", extension="zip", description="ZIP Archive (Spanned)"),
)

_RAR = _variants(
    "RAR", "Archive",
    dict(magic=b"Rar!\x1A\x07\x00", extension="rar",
         description="RAR Archive (v1.5+)"),
    dict(magic=b"Rar!\x1A\x07\x01\x00", extension="rar",
         description="RAR Archive (v5.0+)"),
)

_7Z = _variants(
    "7Z", "Archive",
    dict(magic=b"7z\xBC\xAF\x27\x1C", extension="7z", description="7-Zip Archive"),
)

_GZIP = _variants(
    "GZIP", "Archive",
    dict(magic=b"\x1F\x8B", extension="gz", description="GZIP Archive"),
)

_TAR = _variants(
    "TAR", "Archive",
    dict(magic=b"ustar", offset=257, extension="tar", description="TAR Archive"),
)


# ══════════════════════════════════════════════════════════════
#  D O C U M E N T S
# ══════════════════════════════════════════════════════════════

_PDF = _variants(
    "PDF", "Document",
    dict(magic=b"%PDF", extension="pdf", footer=b"%%EOF",
         description="PDF Document"),
)

_OFFICE_DOC = _variants(
    "OFFICE_DOC", "Document",
    dict(magic=b"\xD0\xCF\x11\xE0\xA1\xB1\x1A\xE1", extension="doc",
         description="Microsoft Office Document (Legacy)"),
)

_RTF = _variants(
    "RTF", "Document",
    dict(magic=b"{\\rtf", extension="rtf", description="Rich Text Format"),
)


# ══════════════════════════════════════════════════════════════
#  M E D I A
# ══════════════════════════════════════════════════════════════

_MP3 = _variants(
    "MP3", "Media",
    dict(magic=b"ID3", extension="mp3", description="MP3 Audio (ID3)"),
    dict(magic=b"\xFF\xFB", extension="mp3", description="MP3 Audio (MPEG-1)"),
    dict(magic=b"\xFF\xF3", extension="mp3", description="MP3 Audio (MPEG-2)"),
    dict(magic=b"\xFF\xF2", extension="mp3", description="MP3 Audio (MPEG-2.5)"),
)

# ── ISO Base Media: box size + "ftyp" ──
_MP4 = _variants(
    "MP4", "Media",
    dict(magic=b"\x00\x00\x00\x20ftyp", extension="mp4", description="MP4 Video"),
    dict(magic=b"\x00\x00\x00\x18ftyp", extension="mp4", description="MP4 Video"),
    dict(magic=b"ftyp", offset=4, extension="mp4",
         description="MP4 Video (ISO Base Media)"),
)

_AVI = _variants(
    "AVI", "Media",
    dict(magic=b"RIFF", extension="avi", description="AVI Video",
         secondary=b"AVI ", secondary_offset=8),
)

_WAV = _variants(
    "WAV", "Media",
    dict(magic=b"RIFF", extension="wav", description="WAV Audio",
         secondary=b"WAVE", secondary_offset=8),
)

_FLAC = _variants(
    "FLAC", "Media",
    dict(magic=b"fLaC", extension="flac", description="FLAC Audio"),
)

_OGG = _variants(
    "OGG", "Media",
    dict(magic=b"OggS", extension="ogg", description="OGG Audio/Video"),
)


# ══════════════════════════════════════════════════════════════
#  E X E C U T A B L E S
# ══════════════════════════════════════════════════════════════

_PE = _variants(
    "PE", "Executable",
    dict(magic=b"MZ", extension="exe", description="Windows PE Executable",
         secondary=b"PE\x00\x00", dynamic_secondary=True),
)

_ELF = _variants(
    "ELF", "Executable",
    dict(magic=b"\x7FELF", extension="elf", description="Linux ELF Executable"),
)

_MACH_O = _variants(
    "MACH_O", "Executable",
    dict(magic=b"\xFE\xED\xFA\xCE", extension="bin",
         description="Mach-O Executable (32-bit BE)"),
    dict(magic=b"\xCE\xFA\xED\xFE", extension="bin",
         description="Mach-O Executable (32-bit LE)"),
    dict(magic=b"\xFE\xED\xFA\xCF", extension="bin",
         description="Mach-O Executable (64-bit BE)"),
    dict(magic=b"\xCF\xFA\xED\xFE", extension="bin",
         description="Mach-O Executable (64-bit LE)"),
)


# ══════════════════════════════════════════════════════════════
#  O T H E R
# ══════════════════════════════════════════════════════════════

_SQLITE = _variants(
    "SQLITE", "Database",
    dict(magic=b"SQLite format 3", extension="sqlite", description="SQLite Database"),
)

_CLASS = _variants(
    "CLASS", "Executable",
    dict(magic=b"\xCA\xFE\xBA\xBE", extension="class", description="Java Class File"),
)

_WASM = _variants(
    "WASM", "Executable",
    dict(magic=b"\x00asm", extension="wasm", description="WebAssembly Binary"),
)

_XML = _variants(
    "XML", "Document",
    dict(magic=b"<?xml", extension="xml", description="XML Document"),
)

_BITCOIN_WALLET = _variants(
    "BITCOIN_WALLET", "Other",
    dict(magic=b"\x01\x00\x00\x00", extension="wallet", description="Bitcoin Wallet",
         context="wallet"),
)

_QR_CODE = _variants(
    "QR_CODE", "Other",
    dict(magic=b"QRCODE", extension="qr", description="QR Code Data"),
)


# ══════════════════════════════════════════════════════════════
#  R E G I S T R Y   (order matters, first match wins)
# ══════════════════════════════════════════════════════════════

SIGNATURE_TABLE = (
    _JPEG, _PNG, _GIF, _BMP, _TIFF, _WEBP, _ICO,
    _JAR, _OFFICE_XML, _ZIP, _RAR, _7Z, _GZIP, _TAR,
    _PDF, _OFFICE_DOC, _RTF,
    _MP3, _MP4, _AVI, _WAV, _FLAC, _OGG,
    _PE, _ELF, _MACH_O,
    _SQLITE, _CLASS, _WASM, _XML, _BITCOIN_WALLET, _QR_CODE,
)

ALL_VARIANTS = tuple(v for _, variants in SIGNATURE_TABLE for v in variants)

_BY_TYPE = {file_type: variants for file_type, variants in SIGNATURE_TABLE}

# Extensions whose end is located through the ZIP End-Of-Central-Directory
ZIP_FAMILY_EXTS = frozenset({"zip", "jar", "docx"})

# RIFF containers carry their own length at +4
RIFF_EXTS = frozenset({"wav", "avi", "webp"})


def get_signature_variants(file_type: str) -> tuple:
    """Ordered variants for one format, or an empty tuple."""
    return _BY_TYPE.get(file_type, ())


def get_all_types() -> list[str]:
    """All format keys in registry order."""
    return [file_type for file_type, _ in SIGNATURE_TABLE]


def iter_variants() -> Iterator[SignatureInfo]:
    """Every variant, flattened, in registry order."""
    return iter(ALL_VARIANTS)


def get_types_for_category(category: str) -> list[str]:
    return [
        file_type for file_type, variants in SIGNATURE_TABLE
        if variants and variants[0].category == category
    ]
