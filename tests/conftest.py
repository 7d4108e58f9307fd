from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from library_store import LibraryStore

MATERIALS = "0 LDraw.org Configuration File\n0 !COLOUR Black CODE 0 VALUE #1B2A34 EDGE #808080\n"


@pytest.fixture()
def ldraw_root(tmp_path: Path) -> Path:
    root = tmp_path / "ldraw"
    for sub in ("parts", "parts/s", "p", "p/48", "models"):
        (root / sub).mkdir(parents=True, exist_ok=True)
    (root / "LDConfig.ldr").write_text(MATERIALS, encoding="utf-8")
    return root


@pytest.fixture()
def library(ldraw_root: Path) -> LibraryStore:
    return LibraryStore(ldraw_root)


@pytest.fixture()
def write_file() -> Callable[[Path, str], Path]:
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        # Write bytes so the test controls line endings exactly.
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write


@pytest.fixture()
def case_sensitive_fs(tmp_path: Path) -> bool:
    marker = tmp_path / "CaseCheck.txt"
    marker.write_text("x", encoding="utf-8")
    return not (tmp_path / "casecheck.txt").exists()
