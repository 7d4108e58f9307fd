from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest

TOOL = Path(__file__).resolve().parent.parent / "runtime" / "blue" / "tools" / "pack_model.py"


@pytest.fixture()
def pack_tool() -> ModuleType:
    spec = importlib.util.spec_from_file_location("pack_model_tool", TOOL)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_cli_writes_packed_file(tmp_path: Path, ldraw_root: Path, write_file: Any, pack_tool: ModuleType) -> None:
    write_file(ldraw_root / "parts" / "3001.dat", "0 Brick\n")
    model = write_file(tmp_path / "house.ldr", "1 4 0 0 0 1 0 0 0 1 0 0 0 1 3001.dat\n")

    rc = pack_tool.main([str(model), "--ldraw", str(ldraw_root)])

    assert rc == 0
    out = tmp_path / "house.ldr_Packed.mpd"
    assert "0 FILE parts/3001.dat" in out.read_text(encoding="utf-8")


def test_cli_custom_output(tmp_path: Path, ldraw_root: Path, write_file: Any, pack_tool: ModuleType) -> None:
    model = write_file(tmp_path / "house.ldr", "0 House\n")
    out = tmp_path / "out" / "packed.mpd"
    out.parent.mkdir()

    assert pack_tool.main([str(model), "--ldraw", str(ldraw_root), "--out", str(out)]) == 0
    assert out.is_file()


def test_cli_reports_missing_references(
    tmp_path: Path, ldraw_root: Path, write_file: Any, pack_tool: ModuleType, capsys: Any
) -> None:
    model = write_file(tmp_path / "house.ldr", "1 4 0 0 0 1 0 0 0 1 0 0 0 1 gone.dat\n")

    assert pack_tool.main([str(model), "--ldraw", str(ldraw_root)]) == 1
    assert "gone.dat" in capsys.readouterr().err
    assert not (tmp_path / "house.ldr_Packed.mpd").exists()


def test_cli_missing_model(tmp_path: Path, ldraw_root: Path, pack_tool: ModuleType) -> None:
    assert pack_tool.main([str(tmp_path / "nope.ldr"), "--ldraw", str(ldraw_root)]) == 2
