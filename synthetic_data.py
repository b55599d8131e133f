"""
Synthetic buffers for the carving tests.

Every builder is deterministic (seeded PRNG) so byte offsets asserted in
the tests are stable run to run.
"""
import io
import random
import struct
import zipfile


def filler(n, seed=0):
    """
    Padding that can never start a known signature.

    Bytes are drawn from 0x80–0xBF: no magic begins in that range except
    PNG's 0x89, whose next byte 'P' (0x50) falls outside it.
    """
    rng = random.Random(seed)
    return bytes(rng.randint(0x80, 0xBF) for _ in range(n))


def random_bytes(n, seed=7):
    rng = random.Random(seed)
    return bytes(rng.getrandbits(8) for _ in range(n))


def build_jpeg(body_len=200, seed=1):
    """SOI + APP0 (JFIF) + SOS + scan data without 0xFF + EOI."""
    rng = random.Random(seed)
    out = bytearray(b"\xFF\xD8")
    out += b"\xFF\xE0" + struct.pack(">H", 16)
    out += b"JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    out += b"\xFF\xDA" + struct.pack(">H", 8) + b"\x01\x01\x00\x00\x3F\x00"
    out += bytes(rng.randint(0x00, 0x7F) for _ in range(body_len))
    out += b"\xFF\xD9"
    return bytes(out)


def build_zip(entries=(("hello.txt", b"hi"),), comment=b""):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_STORED) as zf:
        for name, payload in entries:
            zf.writestr(name, payload)
        zf.comment = comment
    return buf.getvalue()


def build_office_zip(name=b"word/document.xml", payload=b"<w:document/>"):
    """Single-entry archive whose local header carries flags 0x0006 (OOXML writers)."""
    local = struct.pack(
        "<4sHHHHHIIIHH", b"PK\x03\x04", 0x14, 0x06, 0, 0, 0, 0,
        len(payload), len(payload), len(name), 0,
    )
    eocd = b"PK\x05\x06" + b"\x00" * 16 + struct.pack("<H", 0)
    return local + name + payload + eocd


def build_pdf(revisions=2):
    """PDF with incremental updates: one "%%EOF" per revision, ending on the last."""
    out = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\nxref\ntrailer\n<< >>\n%%EOF"
    for i in range(1, revisions):
        out += b"\n%d 0 obj\n<< /Rev %d >>\nendobj\ntrailer\n<< >>\n%%%%EOF" % (i + 1, i)
    return out


def build_wav(payload_len=400):
    payload = b"fmt " + struct.pack("<I", 16) + b"\x01\x00\x01\x00" + b"\x44\xAC\x00\x00" * 2
    payload += b"\x02\x00\x10\x00"
    payload += b"data" + struct.pack("<I", payload_len) + b"\x10" * payload_len
    body = b"WAVE" + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


def build_pe(
    sections=((0x400, 0x200), (0x600, 0x200)),
    size_of_image=0x3000,
    pe32_plus=False,
    e_lfanew=0x80,
):
    """
    Minimal PE image: DOS header, PE header, optional header, section
    table, then raw section data out to the last section's end.

    ``sections`` are (PointerToRawData, SizeOfRawData) pairs.
    """
    opt_size = 240 if pe32_plus else 224
    image_end = max(ptr + size for ptr, size in sections)
    buf = bytearray(image_end)

    buf[0:2] = b"MZ"
    struct.pack_into("<I", buf, 60, e_lfanew)
    buf[e_lfanew:e_lfanew + 4] = b"PE\x00\x00"
    struct.pack_into(
        "<HHIIIHH", buf, e_lfanew + 4,
        0x8664 if pe32_plus else 0x14C, len(sections), 0, 0, 0, opt_size, 0x102,
    )
    struct.pack_into("<H", buf, e_lfanew + 24, 0x20B if pe32_plus else 0x10B)
    struct.pack_into("<I", buf, e_lfanew + 80, size_of_image)

    table = e_lfanew + 24 + opt_size
    for i, (ptr, size) in enumerate(sections):
        entry = table + i * 40
        buf[entry:entry + 8] = b".sect%d\x00\x00" % i
        struct.pack_into("<II", buf, entry + 16, size, ptr)
        buf[ptr:ptr + size] = b"\x90" * size
    return bytes(buf)
