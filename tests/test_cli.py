"""Tests for the tabledrag command line."""

from __future__ import annotations

import json

from click.testing import CliRunner

from tabledrag.cli import main

DOC = """| Name | Qty |
| ---- | --- |
| apple | 3 |
"""

KEY = json.dumps({"path": "doc.md", "fingerprint": "2:Name|Qty"}, separators=(",", ":"))


def write_data(path, tables: dict) -> None:
    path.write_text(json.dumps({"tables": tables, "version": 1}), encoding="utf-8")


class TestCli:
    def test_help_without_command(self) -> None:
        result = CliRunner().invoke(main, [])
        assert result.exit_code == 0
        assert "materialize" in result.output

    def test_fingerprint(self, tmp_path) -> None:
        md = tmp_path / "doc.md"
        md.write_text(DOC, encoding="utf-8")
        result = CliRunner().invoke(main, ["fingerprint", str(md)])
        assert result.exit_code == 0
        assert result.output == "1-3\t2:Name|Qty\n"

    def test_fingerprint_without_tables(self, tmp_path) -> None:
        md = tmp_path / "doc.md"
        md.write_text("no tables\n", encoding="utf-8")
        result = CliRunner().invoke(main, ["fingerprint", str(md)])
        assert result.exit_code == 1

    def test_show(self, tmp_path) -> None:
        data = tmp_path / "data.json"
        write_data(
            data,
            {
                KEY: {"ratios": [0.25, 0.75], "tablePxWidth": 640, "rowHeights": {"1": 40}},
                "garbage": {"ratios": [1.0]},
            },
        )
        result = CliRunner().invoke(main, ["show", str(data)])
        assert result.exit_code == 0
        assert "doc.md  2:Name|Qty" in result.output
        assert "ratios [0.250, 0.750]  width 640px" in result.output
        assert "rows 1=40" in result.output

    def test_show_filters_by_path(self, tmp_path) -> None:
        data = tmp_path / "data.json"
        write_data(data, {KEY: {"ratios": [0.5, 0.5]}})
        result = CliRunner().invoke(main, ["show", str(data), "--path", "other.md"])
        assert "doc.md" not in result.output

    def test_rename(self, tmp_path) -> None:
        data = tmp_path / "data.json"
        write_data(data, {KEY: {"ratios": [0.5, 0.5]}})
        result = CliRunner().invoke(main, ["rename", str(data), "doc.md", "moved.md"])
        assert result.exit_code == 0
        assert "Rewrote 1 record" in result.output
        stored = json.loads(data.read_text(encoding="utf-8"))
        assert [json.loads(k)["path"] for k in stored["tables"]] == ["moved.md"]

    def test_materialize_with_stored_widths(self, tmp_path) -> None:
        md = tmp_path / "doc.md"
        md.write_text(DOC, encoding="utf-8")
        data = tmp_path / "data.json"
        write_data(data, {KEY: {"ratios": [0.25, 0.75], "updatedAt": 5}})
        before = data.read_text(encoding="utf-8")

        result = CliRunner().invoke(main, ["materialize", str(md), str(data), "--path", "doc.md"])
        assert result.exit_code == 0, result.output
        assert '<col style="width: 25%"><col style="width: 75%">' in result.output
        assert "<td>apple</td>" in result.output
        assert data.read_text(encoding="utf-8") == before

    def test_materialize_with_corrupt_data(self, tmp_path) -> None:
        md = tmp_path / "doc.md"
        md.write_text(DOC, encoding="utf-8")
        data = tmp_path / "data.json"
        data.write_text("{oops", encoding="utf-8")

        result = CliRunner().invoke(main, ["materialize", str(md), str(data), "--path", "doc.md"])
        assert result.exit_code == 0, result.output
        assert "<td>apple</td>" in result.output
        assert data.read_text(encoding="utf-8") == "{oops"

    def test_materialize_save(self, tmp_path) -> None:
        md = tmp_path / "doc.md"
        md.write_text(DOC, encoding="utf-8")
        data = tmp_path / "data.json"
        result = CliRunner().invoke(
            main, ["materialize", str(md), str(data), "--path", "doc.md", "--save"]
        )
        assert result.exit_code == 0, result.output
        stored = json.loads(data.read_text(encoding="utf-8"))
        assert list(stored["tables"]) == [KEY]
