"""
Test metadata extraction (JPEG segments, PNG chunks, ZIP entries, Pillow
image headers) and confidence scoring.
"""
import io
import struct
import warnings

from PIL import Image

from carving import confidence, metadata
from carving.confidence import (
    calculate_confidence,
    validate_jpeg_structure,
    validate_pdf_structure,
    validate_zip_structure,
)
from carving.engine import CarvingEngine
from carving.metadata import (
    extract_jpeg_metadata,
    extract_metadata,
    extract_png_metadata,
    extract_zip_metadata,
    read_image_header,
)
from carving.signatures import get_signature_variants

from synthetic_data import build_jpeg, build_pdf, build_zip, filler


def _pillow_image(fmt, size=(4, 3), color="red"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, fmt)
    return buf.getvalue()


def main():
    print("=" * 60)
    print("  Metadata & Confidence — Test Suite")
    print("=" * 60)
    print()

    test_jpeg_segments()
    test_jpeg_malformed_length()
    test_png_chunks()
    test_png_chunk_cap()
    test_zip_entries()
    test_zip_entry_cap()
    test_image_header()
    test_image_header_garbage()
    test_image_header_warnings_contained()
    test_generic_metadata()
    test_carved_png_metadata()
    test_confidence_jpeg()
    test_confidence_bounds()
    test_structure_validators()
    test_validator_fault_is_contained()

    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


def test_jpeg_segments():
    print("── Test: JPEG segments ──")
    segments = extract_jpeg_metadata(build_jpeg())["segments"]
    assert segments == [
        {"marker": "0xFFE0", "length": 16, "offset": 2},
        {"marker": "0xFFDA", "length": 8, "offset": 20},
    ]
    print("  ✅ JPEG segments: PASS")


def test_jpeg_malformed_length():
    """A segment length running off the end stops the walk."""
    print("── Test: JPEG malformed length ──")
    data = b"\xFF\xD8\xFF\xE1\xFF\xF0" + b"\x00" * 20
    segments = extract_jpeg_metadata(data)["segments"]
    assert len(segments) == 1
    assert segments[0]["marker"] == "0xFFE1"

    # Zero-length segments still advance; the cap bounds the walk
    looping = b"\xFF\xD8" + b"\xFF\xE2\x00\x00" * 200
    assert len(extract_jpeg_metadata(looping, max_segments=50)["segments"]) == 50
    print("  ✅ JPEG malformed length: PASS")


def test_png_chunks():
    print("── Test: PNG chunks ──")
    png = _pillow_image("PNG")
    chunks = extract_png_metadata(png)["chunks"]
    types = [c["type"] for c in chunks]
    assert types[0] == "IHDR"
    assert chunks[0]["length"] == 13
    assert chunks[0]["offset"] == 8
    assert types[-1] == "IEND"
    assert "IDAT" in types
    print(f"  chunks: {types}")
    print("  ✅ PNG chunks: PASS")


def test_png_chunk_cap():
    print("── Test: PNG chunk cap ──")
    chunk = struct.pack(">I", 0) + b"tEXt" + b"\x00" * 4
    data = b"\x89PNG\r\n\x1A\n" + chunk * 80
    assert len(extract_png_metadata(data, max_chunks=50)["chunks"]) == 50

    # Forged length jumps past the end: one chunk, then stop
    forged = b"\x89PNG\r\n\x1A\n" + struct.pack(">I", 0x7FFFFFFF) + b"IDAT" + b"\x00" * 20
    assert len(extract_png_metadata(forged)["chunks"]) == 1
    print("  ✅ PNG chunk cap: PASS")


def test_zip_entries():
    print("── Test: ZIP entries ──")
    archive = build_zip(entries=(("a.txt", b"alpha"), ("dir/b.bin", b"\x00\x01\x02")))
    files = extract_zip_metadata(archive)["files"]
    assert [f["filename"] for f in files] == ["a.txt", "dir/b.bin"]
    assert [f["compressed_size"] for f in files] == [5, 3]
    assert files[0]["offset"] == 0
    print("  ✅ ZIP entries: PASS")


def test_zip_entry_cap():
    print("── Test: ZIP entry cap ──")
    archive = build_zip(entries=[(f"f{i:03d}.txt", b"x") for i in range(150)])
    files = extract_zip_metadata(archive, max_entries=100)["files"]
    assert len(files) == 100
    assert files[-1]["filename"] == "f099.txt"
    print("  ✅ ZIP entry cap: PASS")


def test_image_header():
    print("── Test: image header (Pillow) ──")
    info = read_image_header(_pillow_image("PNG", size=(7, 5)))
    assert info == {"format": "PNG", "width": 7, "height": 5, "mode": "RGB"}
    info = read_image_header(_pillow_image("JPEG", size=(16, 8)))
    assert info["format"] == "JPEG"
    assert (info["width"], info["height"]) == (16, 8)
    info = read_image_header(_pillow_image("GIF", size=(3, 3)))
    assert info["format"] == "GIF"
    print("  ✅ image header (Pillow): PASS")


def test_image_header_garbage():
    print("── Test: image header (garbage) ──")
    assert read_image_header(b"") == {}
    assert read_image_header(filler(200, seed=1)) == {}
    # Truncated PNG: signature only
    assert read_image_header(b"\x89PNG\r\n\x1A\n") == {}
    print("  ✅ image header (garbage): PASS")


def test_image_header_warnings_contained():
    """Pillow warnings raised while reading a carved header stay inside the reader."""
    print("── Test: image header warnings ──")
    png = _pillow_image("PNG", size=(6, 2))
    real_open = metadata.Image.open

    def noisy_open(fp, *args, **kwargs):
        warnings.warn("Corrupt EXIF data", UserWarning)
        return real_open(fp, *args, **kwargs)

    metadata.Image.open = noisy_open
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            info = read_image_header(png)
    finally:
        metadata.Image.open = real_open

    assert caught == []
    assert info == {"format": "PNG", "width": 6, "height": 2, "mode": "RGB"}
    print("  ✅ image header warnings: PASS")


def test_generic_metadata():
    print("── Test: generic metadata ──")
    data = b"plain readable text " * 20
    meta = extract_metadata(data, get_signature_variants("XML")[0])
    assert meta["has_strings"] is True
    assert meta["is_compressed"] is False
    assert 0.0 < meta["entropy"] < 8.0
    assert meta["magic_bytes"].startswith("0x70 0x6c 0x61")
    assert len(meta["magic_bytes"].split()) == 16
    assert "jpeg" not in meta and "png" not in meta and "zip" not in meta
    print("  ✅ generic metadata: PASS")


def test_carved_png_metadata():
    """A carved PNG gets its chunk list and its Pillow header summary."""
    print("── Test: carved PNG ──")
    png = _pillow_image("PNG", size=(9, 4))
    carved = CarvingEngine().carve(filler(700, seed=2) + png + filler(700, seed=3))

    assert len(carved) == 1
    cf = carved[0]
    assert cf.file_type == "PNG"
    assert cf.data == png
    assert cf.metadata["png"]["chunks"][-1]["type"] == "IEND"
    assert cf.metadata["image"]["width"] == 9
    assert cf.metadata["image"]["height"] == 4
    print("  ✅ carved PNG: PASS")


def test_confidence_jpeg():
    """Plausible size + footer + JPEG structure saturates the score."""
    print("── Test: JPEG confidence ──")
    jpeg = build_jpeg()
    assert calculate_confidence(jpeg, get_signature_variants("JPEG")[0]) == 100

    # No footer: base + size + structure only
    cut = jpeg[:-2]
    score = calculate_confidence(cut, get_signature_variants("JPEG")[0])
    assert 70 <= score < 100
    print("  ✅ JPEG confidence: PASS")


def test_confidence_bounds():
    print("── Test: confidence bounds ──")
    tiny = calculate_confidence(b"BM" + b"\x00" * 10, get_signature_variants("BMP")[0])
    assert tiny == 50
    for file_type in ("PDF", "ZIP", "GZIP", "PNG"):
        sig = get_signature_variants(file_type)[0]
        for data in (b"", filler(50, seed=4), filler(5000, seed=5)):
            assert 0 <= calculate_confidence(data, sig) <= 100
    print("  ✅ confidence bounds: PASS")


def test_structure_validators():
    print("── Test: structure validators ──")
    assert validate_zip_structure(build_zip()) == 15
    assert validate_zip_structure(b"PK\x03\x04" + b"\xFF" * 40) == 0
    assert validate_pdf_structure(build_pdf()) == 15
    assert validate_pdf_structure(b"%PDF-") == 10
    assert validate_jpeg_structure(build_jpeg()) >= 5
    assert validate_jpeg_structure(b"") == 0
    print("  ✅ structure validators: PASS")


def test_validator_fault_is_contained():
    """A validator that raises contributes 0 instead of failing the carve."""
    print("── Test: validator fault ──")
    sig = get_signature_variants("ZIP")[0]
    archive = build_zip()
    baseline = 50 + 20   # base + plausible size

    def broken(data, config):
        raise ValueError("corrupt structure")

    original = confidence._VALIDATORS["zip"]
    confidence._VALIDATORS["zip"] = broken
    try:
        assert calculate_confidence(archive, sig) == baseline
    finally:
        confidence._VALIDATORS["zip"] = original
    assert calculate_confidence(archive, sig) == baseline + 15
    print("  ✅ validator fault: PASS")


if __name__ == "__main__":
    main()
