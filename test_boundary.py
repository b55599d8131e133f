"""
Test end-of-file resolution: footer, PDF %%EOF, ZIP EOCD, PE SizeOfImage,
RIFF chunk size, the next-signature / window fallback and the shared
search cache.
"""
import struct

from carving import boundary
from carving.boundary import (
    BoundaryResolver,
    FileEnd,
    find_file_end,
    find_next_signature_or_end,
    find_pdf_end,
    find_riff_end,
    find_zip_end,
)
from carving.config import CarvingConfig
from carving.signatures import ALL_VARIANTS, get_signature_variants, iter_variants

from synthetic_data import build_jpeg, build_pdf, build_pe, build_wav, build_zip, filler


def _sig(file_type, index=0):
    return get_signature_variants(file_type)[index]


def main():
    print("=" * 60)
    print("  Boundary Resolver — Test Suite")
    print("=" * 60)
    print()

    test_footer_end()
    test_footer_at_buffer_end()
    test_pdf_last_eof()
    test_pdf_without_eof()
    test_zip_eocd_with_comment()
    test_zip_truncated_eocd()
    test_pe_size_of_image()
    test_pe_bad_size_of_image()
    test_riff_chunk_size()
    test_riff_forged_size()
    test_next_signature_fallback()
    test_window_fallback()
    test_resolver_search_cache()
    test_resolver_matches_one_shot()
    test_probe_list_covers_registry()

    print()
    print("=" * 60)
    print("  ALL TESTS PASSED ✅")
    print("=" * 60)


def test_footer_end():
    print("── Test: footer end ──")
    jpeg = build_jpeg()
    data = filler(50, seed=1) + jpeg + filler(50, seed=2)
    end = find_file_end(data, 50, _sig("JPEG"))
    assert end == FileEnd(50 + len(jpeg), "footer")
    print("  ✅ footer end: PASS")


def test_footer_at_buffer_end():
    """A footer whose last byte is the last byte of the buffer still counts."""
    print("── Test: footer at buffer end ──")
    jpeg = build_jpeg()
    end = find_file_end(jpeg, 0, _sig("JPEG"))
    assert end == FileEnd(len(jpeg), "footer")
    print("  ✅ footer at buffer end: PASS")


def test_pdf_last_eof():
    """Incremental updates: the carve ends at the LAST %%EOF."""
    print("── Test: PDF last %%EOF ──")
    pdf = build_pdf(revisions=3)
    assert pdf.count(b"%%EOF") == 3
    data = pdf + filler(100, seed=3)
    end = find_file_end(data, 0, _sig("PDF"))
    assert end == FileEnd(len(pdf), "pdf-eof")
    print("  ✅ PDF last %%EOF: PASS")


def test_pdf_without_eof():
    print("── Test: PDF without %%EOF ──")
    data = b"%PDF-1.7\n" + filler(400, seed=4)
    end = find_pdf_end(data, 0, 4, CarvingConfig())
    assert end == FileEnd(len(data), "window")
    print("  ✅ PDF without %%EOF: PASS")


def test_zip_eocd_with_comment():
    print("── Test: ZIP EOCD + comment ──")
    archive = build_zip(comment=b"carved from unallocated space")
    data = filler(10, seed=5) + archive + filler(300, seed=6)
    end = find_file_end(data, 10, _sig("ZIP"))
    assert end == FileEnd(10 + len(archive), "zip-eocd")
    print("  ✅ ZIP EOCD + comment: PASS")


def test_zip_truncated_eocd():
    """Comment length pointing past the buffer is clamped to the buffer."""
    print("── Test: ZIP truncated comment ──")
    local = b"PK\x03\x04" + b"\x00" * 26
    eocd = b"PK\x05\x06" + b"\x00" * 16 + struct.pack("<H", 500)
    data = local + eocd + b"short comment"
    end = find_zip_end(data, 0, CarvingConfig())
    assert end == FileEnd(len(data), "zip-eocd")

    # An EOCD cut off by the end of the buffer is ignored
    cut = local + filler(200, seed=7) + b"PK\x05\x06\x00\x00"
    end = find_zip_end(cut, 0, CarvingConfig())
    assert end == FileEnd(230, "next-signature")
    print("  ✅ ZIP truncated comment: PASS")


def test_pe_size_of_image():
    print("── Test: PE SizeOfImage ──")
    image = build_pe(size_of_image=0x600)
    data = image + filler(2000, seed=8)
    end = find_file_end(data, 0, _sig("PE"))
    assert end == FileEnd(0x600, "pe-image")

    # SizeOfImage beyond the buffer is clamped
    big = build_pe(size_of_image=0x100000)
    end = find_file_end(big, 0, _sig("PE"))
    assert end == FileEnd(len(big), "pe-image")
    print("  ✅ PE SizeOfImage: PASS")


def test_pe_bad_size_of_image():
    """Zero or absurd SizeOfImage falls back to the next-signature search."""
    print("── Test: PE bad SizeOfImage ──")
    cfg = CarvingConfig()
    for size in (0, cfg.pe_max_image_size, 0xFFFFFFFF):
        image = build_pe(size_of_image=size)
        data = image + filler(3000, seed=9) + build_jpeg()
        end = find_file_end(data, 0, _sig("PE"), cfg)
        assert end == FileEnd(len(image) + 3000, "next-signature"), (size, end)
    print("  ✅ PE bad SizeOfImage: PASS")


def test_riff_chunk_size():
    print("── Test: RIFF chunk size ──")
    wav = build_wav()
    data = filler(20, seed=10) + wav + filler(100, seed=11)
    end = find_file_end(data, 20, _sig("WAV"))
    assert end == FileEnd(20 + len(wav), "riff")
    print("  ✅ RIFF chunk size: PASS")


def test_riff_forged_size():
    print("── Test: RIFF forged size ──")
    forged = b"RIFF" + struct.pack("<I", 0xFFFFFFF0) + b"WAVE" + filler(300, seed=12)
    end = find_riff_end(forged, 0, CarvingConfig())
    assert end == FileEnd(len(forged), "window")

    tiny = b"RIFF" + struct.pack("<I", 2) + b"WAVE" + filler(300, seed=13)
    assert find_riff_end(tiny, 0, CarvingConfig()).method == "window"
    print("  ✅ RIFF forged size: PASS")


def test_next_signature_fallback():
    """No footer or length field: the file runs up to the next known magic."""
    print("── Test: next-signature fallback ──")
    gzip_head = b"\x1F\x8B\x08\x00" + filler(400, seed=14)
    data = gzip_head + build_pdf()
    end = find_file_end(data, 0, _sig("GZIP"))
    assert end == FileEnd(len(gzip_head), "next-signature")

    # Magic inside the first 100 bytes is skipped over
    early = b"\x1F\x8B" + filler(30, seed=15) + b"GIF89a" + filler(300, seed=16)
    end = find_file_end(early, 0, _sig("GZIP"))
    assert end == FileEnd(len(early), "window")
    print("  ✅ next-signature fallback: PASS")


def test_window_fallback():
    print("── Test: window fallback ──")
    cfg = CarvingConfig(fallback_window=50)
    data = b"\x1F\x8B" + filler(1000, seed=17)
    end = find_file_end(data, 0, _sig("GZIP"), cfg)
    assert end == FileEnd(0 + cfg.fallback_skip + 50, "window")

    # Scan start beyond the buffer: the buffer end
    end = find_next_signature_or_end(data, len(data) + 5, cfg)
    assert end == FileEnd(len(data), "window")
    print("  ✅ window fallback: PASS")


def test_resolver_search_cache():
    """Thousands of spurious candidates share one walk per pattern, not one each."""
    print("── Test: resolver search cache ──")
    unit = b"\xFF\xD8\xFF" + filler(197, seed=18)
    jpeg = _sig("JPEG")

    def work(copies):
        data = unit * copies
        resolver = BoundaryResolver(data)
        for start in range(0, len(data), len(unit)):
            end = resolver.file_end(start, jpeg)
            assert end.method in ("next-signature", "window"), (start, end)
        return len(data), resolver

    size, resolver = work(2000)
    assert resolver.bytes_searched < 100 * size, resolver.bytes_searched

    # Work grows with the number of candidates, not with candidates x buffer
    _, small = work(500)
    assert resolver.searches <= 4 * small.searches + 100
    print(f"  {resolver.searches} searches over {resolver.bytes_searched} bytes")
    print("  ✅ resolver search cache: PASS")


def test_resolver_matches_one_shot():
    """A shared resolver gives the same ends as fresh per-call resolution."""
    print("── Test: resolver vs one-shot ──")
    jpeg, archive, pdf = build_jpeg(), build_zip(), build_pdf(revisions=2)
    data = jpeg + filler(300, seed=19) + archive + filler(300, seed=20) + pdf
    starts = [(0, _sig("JPEG")), (len(jpeg) + 300, _sig("ZIP")),
              (len(data) - len(pdf), _sig("PDF"))]

    resolver = BoundaryResolver(data)
    for start, sig in starts:
        assert resolver.file_end(start, sig) == find_file_end(data, start, sig)
    # Asking again, backwards, still agrees
    for start, sig in reversed(starts):
        assert resolver.file_end(start, sig) == find_file_end(data, start, sig)
    assert resolver.file_end(0, _sig("JPEG")) == FileEnd(len(jpeg), "footer")
    print("  ✅ resolver vs one-shot: PASS")


def test_probe_list_covers_registry():
    print("── Test: next-signature probes ──")
    variants = tuple(iter_variants())
    assert variants == ALL_VARIANTS
    assert set(boundary._MAGIC_PROBES) == {(v.magic, v.offset) for v in variants}
    print("  ✅ next-signature probes: PASS")


if __name__ == "__main__":
    main()
