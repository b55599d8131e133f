"""
PE Header Parsing — just enough of the Portable Executable layout to find
an image's declared size and the raw extent of its sections.

Layout (offsets relative to the "PE\\0\\0" header):
  +4   COFF file header (20 bytes)
         +6   NumberOfSections      u16
         +20  SizeOfOptionalHeader  u16
  +24  Optional header
         +24  Magic  0x10B = PE32, 0x20B = PE32+
         +80  SizeOfImage           u32  (same position for PE32 and PE32+)
  +24+SizeOfOptionalHeader  Section table, 40 bytes per entry
         +16  SizeOfRawData         u32
         +20  PointerToRawData      u32

The classic shortcut of assuming the section table at +248 only holds for
PE32 with the standard 224-byte optional header.  PE32+ images use a
240-byte optional header, so the table position comes from
SizeOfOptionalHeader and +248 is kept only as the fallback.
"""

from dataclasses import dataclass
from typing import Optional

from .matcher import matches, read_u16_le, read_u32_le, resolve_pe_header_offset

PE_SIGNATURE = b"PE\x00\x00"
PE32_MAGIC = 0x10B
PE32_PLUS_MAGIC = 0x20B

PE32_SECTION_TABLE_OFFSET = 248     # 4 + 20 + 224
SECTION_ENTRY_SIZE = 40
MAX_OPTIONAL_HEADER_SIZE = 4096


@dataclass(frozen=True)
class PeSection:
    raw_offset: int     # PointerToRawData, relative to the MZ start
    raw_size: int       # SizeOfRawData

    @property
    def raw_end(self) -> int:
        return self.raw_offset + self.raw_size


def find_pe_header(data: bytes, mz_offset: int) -> Optional[int]:
    """Absolute offset of a valid "PE\\0\\0" header for the MZ at ``mz_offset``."""
    if not matches(data, mz_offset, b"MZ"):
        return None
    pe_offset = resolve_pe_header_offset(data, mz_offset)
    if pe_offset is None or not matches(data, pe_offset, PE_SIGNATURE):
        return None
    return pe_offset


def read_size_of_image(data: bytes, pe_offset: int) -> Optional[int]:
    return read_u32_le(data, pe_offset + 80)


def optional_header_magic(data: bytes, pe_offset: int) -> Optional[int]:
    return read_u16_le(data, pe_offset + 24)


def section_table_offset(data: bytes, pe_offset: int) -> int:
    """Absolute section-table offset; falls back to the PE32 constant."""
    opt_size = read_u16_le(data, pe_offset + 20)
    if opt_size and opt_size <= MAX_OPTIONAL_HEADER_SIZE:
        return pe_offset + 24 + opt_size
    return pe_offset + PE32_SECTION_TABLE_OFFSET


def parse_sections(data: bytes, pe_offset: int, max_sections: int = 20) -> list[PeSection]:
    """Section entries (at most ``max_sections``) that fit inside the buffer."""
    count = read_u16_le(data, pe_offset + 6)
    if not count:
        return []
    table = section_table_offset(data, pe_offset)
    sections = []
    for i in range(min(count, max_sections)):
        entry = table + i * SECTION_ENTRY_SIZE
        if entry + SECTION_ENTRY_SIZE > len(data):
            break
        sections.append(PeSection(
            raw_offset=read_u32_le(data, entry + 20),
            raw_size=read_u32_le(data, entry + 16),
        ))
    return sections
