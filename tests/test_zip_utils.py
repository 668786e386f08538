import zipfile
from pathlib import Path

import pytest

from pdfzip_backend.errors import ArchiveError, NameMapError
from pdfzip_backend.workspace import UploadedFile
from pdfzip_backend.zip_utils import (
    build_archive,
    display_name_for,
    parse_name_map,
    resolve_entry_names,
)


def _record(tmp_path: Path, index: int, original_name: str, data: bytes = b"%PDF-1.4") -> UploadedFile:
    stored_name = f"{1000 + index}-stored.pdf"
    path = tmp_path / stored_name
    path.write_bytes(data)
    return UploadedFile(
        path=path,
        stored_name=stored_name,
        original_name=original_name,
        content_type="application/pdf",
        size=len(data),
        index=index,
    )


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_name_map_missing(raw):
    assert parse_name_map(raw) == {}


def test_parse_name_map_valid():
    assert parse_name_map('{"0": "First.pdf", "b.pdf": "Second.pdf"}') == {
        "0": "First.pdf",
        "b.pdf": "Second.pdf",
    }


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", '"name.pdf"', '{"0": 5}', "null"])
def test_parse_name_map_rejects_malformed(raw):
    with pytest.raises(NameMapError) as exc_info:
        parse_name_map(raw)
    assert exc_info.value.status_code == 500


def test_display_name_lookup_order(tmp_path):
    upload = _record(tmp_path, 1, "b.pdf")
    assert display_name_for(upload, {}) == "b.pdf"
    assert display_name_for(upload, {"b.pdf": "ByName.pdf"}) == "ByName.pdf"
    assert display_name_for(upload, {"1": "ByIndex.pdf", "b.pdf": "ByName.pdf"}) == "ByIndex.pdf"
    assert display_name_for(upload, {"0": "Other.pdf"}) == "b.pdf"
    assert display_name_for(upload, {"pdfFiles": "ByField.pdf"}) == "ByField.pdf"
    assert display_name_for(upload, {"b.pdf": "ByName.pdf", "pdfFiles": "ByField.pdf"}) == "ByName.pdf"


def test_display_name_strips_directories(tmp_path):
    upload = _record(tmp_path, 0, "a.pdf")
    assert display_name_for(upload, {"0": "../../evil.pdf"}) == "evil.pdf"
    assert display_name_for(upload, {"0": "C:\\temp\\x.pdf"}) == "x.pdf"
    # Unusable mapped names fall back to the client filename
    assert display_name_for(upload, {"0": ".."}) == "a.pdf"
    assert display_name_for(upload, {"0": ""}) == "a.pdf"


def test_display_name_without_client_filename(tmp_path):
    upload = _record(tmp_path, 0, "")
    assert display_name_for(upload, {}) == "upload.pdf"


def test_resolve_entry_names_disambiguates(tmp_path):
    files = [_record(tmp_path, i, "same.pdf") for i in range(3)]
    assert resolve_entry_names(files, {}) == ["same.pdf", "same (1).pdf", "same (2).pdf"]


def test_build_archive_writes_every_upload(tmp_path):
    src = tmp_path / "uploads"
    src.mkdir()
    files = [
        _record(src, 0, "a.pdf", b"%PDF-a"),
        _record(src, 1, "b.pdf", b"%PDF-b"),
    ]
    zips_dir = tmp_path / "zips"

    artifact = build_archive(files, zips_dir, {"1": "Renamed.pdf"})

    assert artifact.path.parent == zips_dir.resolve()
    assert artifact.name.startswith("pdf-archive-") and artifact.name.endswith(".zip")
    assert artifact.expires_at is None
    with zipfile.ZipFile(artifact.path) as zf:
        assert zf.namelist() == ["a.pdf", "Renamed.pdf"]
        assert zf.read("a.pdf") == b"%PDF-a"
        assert zf.read("Renamed.pdf") == b"%PDF-b"


def test_build_archive_names_are_unique(tmp_path):
    files = [_record(tmp_path, 0, "a.pdf")]
    first = build_archive(files, tmp_path / "zips", {})
    second = build_archive(files, tmp_path / "zips", {})
    assert first.name != second.name


def test_build_archive_failure_removes_partial_zip(tmp_path):
    upload = _record(tmp_path, 0, "a.pdf")
    upload.path.unlink()
    zips_dir = tmp_path / "zips"

    with pytest.raises(ArchiveError):
        build_archive([upload], zips_dir, {})
    assert list(zips_dir.iterdir()) == []


def test_field_name_key_applies_to_every_upload(tmp_path):
    files = [_record(tmp_path, i, f"{i}.pdf") for i in range(2)]
    assert resolve_entry_names(files, {"pdfFiles": "Scan.pdf"}) == ["Scan.pdf", "Scan (1).pdf"]
