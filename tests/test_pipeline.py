"""Tests for batch conversion and extraction."""

import os

import fitz  # type: ignore[import]
import pytest

from tiffolio.config import Settings
from tiffolio.drawings.session import DrawingExportSession, ExportResult
from tiffolio.errors import EncodeError
from tiffolio.pipeline import (
    ConversionState,
    ExtractionState,
    convert_batch,
    convert_file,
    discover_pdfs,
    discover_rasters,
    export_drawings,
    extract_file,
    run_directory,
)
from tiffolio.raster.frames import PillowFrameSource
from tests.helpers.tiff_factory import (
    make_corrupt_tiff,
    make_multi_frame_tiff,
    make_pdf_with_words,
    make_truncated_tiff,
)


def page_sizes(pdf_path):
    doc = fitz.open(pdf_path)
    try:
        return [(page.rect.width, page.rect.height) for page in doc]
    finally:
        doc.close()


class RecordingExporter:
    """Fake drawing application writing a one-page PDF per export."""

    def __init__(self, fail_on=()):
        self.calls = []
        self.fail_on = set(fail_on)

    def open(self):
        self.calls.append("open")

    def export(self, source, target):
        self.calls.append(("export", source.name))
        if source.name in self.fail_on:
            return ExportResult(success=False, error_count=2, warning_count=1)
        doc = fitz.open()
        try:
            doc.new_page(width=842, height=595).insert_text((600, 580), "EXPORTED")
            target.write_bytes(doc.tobytes())
        finally:
            doc.close()
        return ExportResult(success=True, error_count=0, warning_count=3)

    def close(self):
        self.calls.append("close")


class CrashingExporter(RecordingExporter):
    """Fake drawing application whose automation call blows up on some drawings."""

    def __init__(self, crash_on=()):
        super().__init__()
        self.crash_on = set(crash_on)

    def export(self, source, target):
        if source.name in self.crash_on:
            self.calls.append(("export", source.name))
            raise RuntimeError("COM call failed")
        return super().export(source, target)


class SilentExporter(RecordingExporter):
    """Fake drawing application that reports success without writing anything."""

    def export(self, source, target):
        self.calls.append(("export", source.name))
        return ExportResult(success=True, error_count=0, warning_count=0)


class CrashingFrameSource:
    """Pillow decoding, except for one file whose decoder fails unexpectedly."""

    def __init__(self, crash_on):
        self.crash_on = crash_on
        self.pillow = PillowFrameSource()

    def frames(self, path):
        if path.name == self.crash_on:
            raise RuntimeError("decoder crashed")
        return self.pillow.frames(path)


class CrashingLayoutSource:
    def pages(self, path):
        raise RuntimeError("layout engine crashed")


class TestDiscovery:
    def test_rasters_are_matched_case_insensitively(self, tmp_path):
        for name in ["a.tif", "b.TIFF", "c.Tif", "d.pdf", "e.png", "f.tif.bak"]:
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "dir.tif").mkdir()

        assert [p.name for p in discover_rasters(tmp_path)] == ["a.tif", "b.TIFF", "c.Tif"]
        assert [p.name for p in discover_pdfs(tmp_path)] == ["d.pdf"]

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            discover_rasters(tmp_path / "missing")


class TestConvertFile:
    def test_n_frames_give_n_pages_in_order(self, tmp_path):
        tiff_path = make_multi_frame_tiff(tmp_path, [(600, 600), (300, 150), (150, 600)])

        outcome = convert_file(tiff_path)

        assert outcome.ok
        assert outcome.state is ConversionState.DONE
        assert outcome.output == tmp_path / "drawing.pdf"
        assert outcome.page_count == 3
        assert page_sizes(outcome.output) == [
            pytest.approx((144, 144)),
            pytest.approx((72, 36)),
            pytest.approx((36, 144)),
        ]

    def test_conversion_is_idempotent_in_geometry(self, tmp_path):
        tiff_path = make_multi_frame_tiff(tmp_path, [(601, 333), (1234, 77)], dpi=(300, 200))

        first = page_sizes(convert_file(tiff_path).output)
        second = page_sizes(convert_file(tiff_path).output)

        assert first == second

    def test_decode_failure_is_reported(self, tmp_path):
        outcome = convert_file(make_corrupt_tiff(tmp_path))

        assert not outcome.ok
        assert outcome.state is ConversionState.FAILED
        assert outcome.failed_at is ConversionState.DECODING
        assert outcome.reason.startswith("DecodeError")
        assert not (tmp_path / "corrupt.pdf").exists()

    def test_missing_density_is_reported(self, tmp_path):
        outcome = convert_file(make_multi_frame_tiff(tmp_path, [(100, 100)], dpi=None))

        assert outcome.failed_at is ConversionState.DECODING
        assert outcome.reason.startswith("MissingMetadataError")
        assert not (tmp_path / "drawing.pdf").exists()

    def test_unexpected_decoder_error_is_reported(self, tmp_path):
        tiff_path = make_multi_frame_tiff(tmp_path, [(100, 100)])

        outcome = convert_file(tiff_path, frame_source=CrashingFrameSource("drawing.tif"))

        assert outcome.state is ConversionState.FAILED
        assert outcome.failed_at is ConversionState.DECODING
        assert outcome.reason == "RuntimeError: decoder crashed"
        assert not (tmp_path / "drawing.pdf").exists()

    def test_encode_failure_leaves_no_output(self, tmp_path, monkeypatch):
        tiff_path = make_multi_frame_tiff(tmp_path, [(10, 10), (10, 10)])

        def broken_compose(self, frame):
            raise EncodeError(f"cannot encode frame {frame.index}")

        monkeypatch.setattr("tiffolio.pdf.compositor.PageCompositor.compose", broken_compose)

        outcome = convert_file(tiff_path)

        assert outcome.failed_at is ConversionState.COMPOSING
        assert outcome.reason == "EncodeError: cannot encode frame 0"
        assert list(tmp_path.glob("*.pdf")) == []


class TestConvertBatch:
    def test_corrupt_file_does_not_stop_batch(self, tmp_path):
        good_a = make_multi_frame_tiff(tmp_path, [(600, 600)], name="a.tif")
        bad = make_corrupt_tiff(tmp_path, name="b.tif")
        good_c = make_multi_frame_tiff(tmp_path, [(300, 300), (300, 300)], name="c.tiff")

        outcomes = convert_batch([good_a, bad, good_c], Settings(workers=2))

        assert [o.path for o in outcomes] == [good_a, bad, good_c]
        assert [o.ok for o in outcomes] == [True, False, True]
        assert "DecodeError" in outcomes[1].reason
        assert page_sizes(tmp_path / "a.pdf") == [pytest.approx((144, 144))]
        assert len(page_sizes(tmp_path / "c.pdf")) == 2

    def test_truncated_file_does_not_stop_batch(self, tmp_path):
        good_a = make_multi_frame_tiff(tmp_path, [(600, 600)], name="a.tif")
        truncated = make_truncated_tiff(tmp_path, name="b.tif")
        good_c = make_multi_frame_tiff(tmp_path, [(300, 300)], name="c.tif")

        outcomes = convert_batch([good_a, truncated, good_c], Settings(workers=3))

        assert [o.ok for o in outcomes] == [True, False, True]
        assert outcomes[1].reason.startswith("DecodeError")
        assert not (tmp_path / "b.pdf").exists()
        assert (tmp_path / "a.pdf").exists()
        assert (tmp_path / "c.pdf").exists()

    def test_unexpected_error_does_not_stop_batch(self, tmp_path):
        good = make_multi_frame_tiff(tmp_path, [(300, 300)], name="a.tif")
        crashing = make_multi_frame_tiff(tmp_path, [(300, 300)], name="b.tif")

        outcomes = convert_batch(
            [good, crashing], Settings(workers=2), frame_source=CrashingFrameSource("b.tif")
        )

        assert [o.ok for o in outcomes] == [True, False]
        assert outcomes[1].reason == "RuntimeError: decoder crashed"
        assert page_sizes(tmp_path / "a.pdf") == [pytest.approx((72, 72))]
        assert not (tmp_path / "b.pdf").exists()

    def test_empty_batch(self):
        assert convert_batch([]) == []


class TestExtractFile:
    def test_extracts_corner_words(self, tmp_path):
        pdf_path = make_pdf_with_words(tmp_path, [("A-42", 500, 30), ("Elsewhere", 50, 700)])

        outcome = extract_file(pdf_path)

        assert outcome.ok
        assert outcome.state is ExtractionState.CLOSED
        assert [w.text for w in outcome.pages[0].words] == ["A-42"]

    def test_unreadable_pdf_is_reported(self, tmp_path):
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"not a pdf")

        outcome = extract_file(path)

        assert not outcome.ok
        assert outcome.reason.startswith("LayoutOpenError")
        assert outcome.state is ExtractionState.CLOSED

    def test_unexpected_layout_error_is_reported(self, tmp_path):
        pdf_path = make_pdf_with_words(tmp_path, [("A-42", 500, 30)])

        outcome = extract_file(pdf_path, layout_source=CrashingLayoutSource())

        assert not outcome.ok
        assert outcome.reason == "RuntimeError: layout engine crashed"
        assert outcome.state is ExtractionState.CLOSED
        assert outcome.pages == []


class TestExportDrawings:
    def test_session_exports_sequentially_and_reports(self, tmp_path):
        drawings = [tmp_path / "a.slddrw", tmp_path / "b.slddrw"]
        exporter = RecordingExporter(fail_on={"b.slddrw"})

        with DrawingExportSession(exporter) as session:
            outcomes = export_drawings(session, drawings)

        assert [o.ok for o in outcomes] == [True, False]
        assert outcomes[0].output == tmp_path / "a.pdf"
        assert "errors=2" in outcomes[1].reason
        assert exporter.calls == ["open", ("export", "a.slddrw"), ("export", "b.slddrw"), "close"]

    def test_export_exception_is_reported_per_drawing(self, tmp_path):
        drawings = [tmp_path / "a.slddrw", tmp_path / "b.slddrw"]
        exporter = CrashingExporter(crash_on={"a.slddrw"})

        with DrawingExportSession(exporter) as session:
            outcomes = export_drawings(session, drawings)

        assert [o.ok for o in outcomes] == [False, True]
        assert outcomes[0].reason == "RuntimeError: COM call failed"
        assert outcomes[0].failed_at is ConversionState.WRITING
        assert (tmp_path / "b.pdf").exists()

    def test_stale_pdf_does_not_count_as_export(self, tmp_path):
        stale = tmp_path / "a.pdf"
        stale.write_bytes(b"%PDF-1.7 left over from an earlier run")
        os.utime(stale, (1_000_000_000, 1_000_000_000))

        with DrawingExportSession(SilentExporter()) as session:
            outcomes = export_drawings(session, [tmp_path / "a.slddrw"])

        assert not outcomes[0].ok
        assert "wrote no new a.pdf" in outcomes[0].reason
        assert outcomes[0].output is None

    def test_missing_pdf_does_not_count_as_export(self, tmp_path):
        with DrawingExportSession(SilentExporter()) as session:
            outcomes = export_drawings(session, [tmp_path / "a.slddrw"])

        assert not outcomes[0].ok
        assert "wrote no new a.pdf" in outcomes[0].reason

    def test_export_over_stale_pdf_succeeds(self, tmp_path):
        stale = tmp_path / "a.pdf"
        stale.write_bytes(b"%PDF-1.7 left over from an earlier run")
        os.utime(stale, (1_000_000_000, 1_000_000_000))

        with DrawingExportSession(RecordingExporter()) as session:
            outcomes = export_drawings(session, [tmp_path / "a.slddrw"])

        assert outcomes[0].ok
        assert outcomes[0].output == stale
        assert page_sizes(stale) == [pytest.approx((842, 595))]


class TestRunDirectory:
    def test_converts_then_extracts(self, tmp_path):
        make_multi_frame_tiff(tmp_path, [(600, 600)], name="sheet.tif")
        make_corrupt_tiff(tmp_path, name="broken.tif")

        report = run_directory(tmp_path, Settings(workers=2))

        assert [o.ok for o in report.conversions] == [False, True]
        assert [o.path.name for o in report.extractions] == ["sheet.pdf"]
        assert report.extractions[0].ok
        assert not report.ok

    def test_drawings_exported_when_session_given(self, tmp_path):
        (tmp_path / "plan.slddrw").write_bytes(b"")
        exporter = RecordingExporter()

        report = run_directory(tmp_path, session=DrawingExportSession(exporter))

        assert report.ok
        assert exporter.calls[0] == "open" and exporter.calls[-1] == "close"
        assert [w.text for w in report.extractions[0].pages[0].words] == ["EXPORTED"]

    def test_crashing_export_does_not_stop_directory(self, tmp_path):
        (tmp_path / "a.slddrw").write_bytes(b"")
        (tmp_path / "b.slddrw").write_bytes(b"")
        make_multi_frame_tiff(tmp_path, [(600, 600)], name="scan.tif")
        exporter = CrashingExporter(crash_on={"a.slddrw"})

        report = run_directory(tmp_path, session=DrawingExportSession(exporter))

        assert [(o.path.name, o.ok) for o in report.conversions] == [
            ("a.slddrw", False),
            ("b.slddrw", True),
            ("scan.tif", True),
        ]
        assert (tmp_path / "b.pdf").exists()
        assert (tmp_path / "scan.pdf").exists()
        assert [o.path.name for o in report.extractions] == ["b.pdf", "scan.pdf"]
        assert exporter.calls.count("close") == 1
        assert not report.ok

    def test_missing_directory_is_fatal(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            run_directory(tmp_path / "missing")
