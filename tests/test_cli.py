from __future__ import annotations

from pathlib import Path

import pytest

import flatdxf.cli as cli_module
from tests._dxf_helpers import block, circle, dxf_text, entity, insert, layer, line


def _drawing(tmp_path: Path) -> Path:
    path = tmp_path / "drawing.dxf"
    path.write_text(
        dxf_text(
            header=[(9, "$INSUNITS"), (70, 4), (9, "$LIMMAX"), (10, 420.0), (20, 297.0)],
            layers=[layer("WALLS", color=3), layer("OLD", flags=1)],
            blocks=[block("PART", circle(0, 0, 1))],
            entities=[
                line(0, 0, 1, 1, layer="WALLS"),
                insert("PART", 5, 5),
                entity("TEXT", (1, "label")),
                entity("POINT", (10, 1.0), (20, 1.0)),
                line(0, 0, 1, 1, paper=True),
            ],
        ),
        encoding="utf-8",
    )
    return path


def test_cli_inspect_reports_summary(tmp_path: Path, capsys) -> None:
    path = _drawing(tmp_path)

    code = cli_module._run_inspect(str(path))

    assert code == 0
    out = capsys.readouterr().out
    assert "units: millimeters" in out
    assert "limits: (0, 0) - (420, 297)" in out
    assert "layers: 2" in out
    assert "frozen_layers: 1" in out
    assert "blocks: 3" in out
    assert "modelspace_entities: 3" in out
    assert "  INSERT: 1" in out
    assert "paperspace_entities" not in out


def test_cli_inspect_verbose_lists_status(tmp_path: Path, capsys) -> None:
    path = _drawing(tmp_path)

    code = cli_module.main(["inspect", str(path), "--verbose", "--keep-paper-space"])

    assert code == 0
    out = capsys.readouterr().out
    assert "paperspace_entities: 1" in out
    assert "status:" in out
    assert "  model.unsupported: 1" in out
    assert "    TEXT: 1" in out
    assert "  paper.read: 1" in out


def test_cli_flatten_reports_primitives(tmp_path: Path, capsys) -> None:
    path = _drawing(tmp_path)

    code = cli_module.main(["--log-level", "debug", "flatten", str(path)])

    assert code == 0
    out = capsys.readouterr().out
    assert "primitives: 2" in out
    assert "  arc: 1" in out
    assert "  segment: 1" in out
    assert "failed_entities: 1" in out
    assert "skipped_entities: 0" in out
    assert "failed[POINT]: 1" in out


def test_cli_flatten_named_block(tmp_path: Path, capsys) -> None:
    path = _drawing(tmp_path)

    code = cli_module.main(["flatten", str(path), "--block", "PART"])

    assert code == 0
    out = capsys.readouterr().out
    assert "block: PART" in out
    assert "primitives: 1" in out


def test_cli_flatten_unknown_block_fails(tmp_path: Path, capsys) -> None:
    path = _drawing(tmp_path)

    code = cli_module.main(["flatten", str(path), "--block", "NOPE"])

    assert code == 2
    assert "error: failed to flatten NOPE" in capsys.readouterr().err


def test_cli_convert_writes_output(tmp_path: Path, capsys) -> None:
    pytest.importorskip("ezdxf")
    path = _drawing(tmp_path)
    output = tmp_path / "out" / "flat.dxf"

    code = cli_module.main(["convert", str(path), str(output)])

    assert code == 0
    assert output.exists()
    out = capsys.readouterr().out
    assert "total_primitives: 2" in out
    assert "written_primitives: 2" in out
    assert "skipped_primitives: 0" in out


def test_cli_missing_file(tmp_path: Path, capsys) -> None:
    missing = tmp_path / "missing.dxf"

    assert cli_module.main(["inspect", str(missing)]) == 2
    assert cli_module.main(["convert", str(missing), str(tmp_path / "out.dxf")]) == 2
    err = capsys.readouterr().err
    assert err.count("error: file not found") == 2


def test_cli_malformed_file(tmp_path: Path, capsys) -> None:
    path = tmp_path / "broken.dxf"
    path.write_text("0\nSECTION\nnot-a-code\nHEADER\n", encoding="utf-8")

    code = cli_module.main(["inspect", str(path)])

    assert code == 2
    assert "line 3" in capsys.readouterr().err


def test_cli_without_command_prints_help(capsys) -> None:
    assert cli_module.main([]) == 0
    assert "usage: flatdxf" in capsys.readouterr().out
