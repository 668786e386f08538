import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Make server.py importable without installing the project
sys.path.append(str(Path(__file__).resolve().parents[1]))

import server  # noqa: E402


@pytest.fixture
def tmp_root(tmp_path, monkeypatch):
    root = tmp_path / "tmp"
    monkeypatch.setattr(server, "TMP_ROOT", root)
    monkeypatch.setattr(server, "UPLOADS_DIR", root / "uploads")
    monkeypatch.setattr(server, "ZIPS_DIR", root / "zips")
    server.archives.clear()
    yield root
    server.archives.clear()


@pytest.fixture
def client(tmp_root):
    with TestClient(server.app) as c:
        yield c


def pdf_bytes(label: str = "doc") -> bytes:
    return b"%PDF-1.4\n% " + label.encode("utf-8") + b"\n%%EOF\n"
