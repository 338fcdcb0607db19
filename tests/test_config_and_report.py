"""
Tests for configuration loading, persisted group state, logging and the Excel report.
"""


import pytest
from openpyxl import load_workbook

from sceneryorder import (
    CollapsedGroups,
    SceneryCategory,
    SceneryStats,
    export_report,
    load_collapsed_groups,
    load_engine_config,
    print_conflict_details,
    print_load_order,
    save_collapsed_groups,
)
from sceneryorder import logging_utils
from sceneryorder.order_mutator import group_by_category

from conftest import make_entry


@pytest.fixture(autouse=True)
def reset_log_level():
    yield
    logging_utils.set_log_level("info")


class TestEngineConfig:

    def test_missing_file_gives_defaults(self, tmp_path, capsys):
        config = load_engine_config(tmp_path / "config.toml")
        assert config.auto_generated_prefix == "XPME_"
        assert config.debounce_recompute is True
        assert config.backup_dir is None
        assert "[warn]" in capsys.readouterr().out

    def test_values_are_read(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            'auto_generated_prefix = "AUTO-"\n'
            "debounce_recompute = false\n"
            'log_level = "warn"\n'
            'backup_dir = "backups"\n',
            encoding="utf-8",
        )
        config = load_engine_config(path)
        assert config.auto_generated_prefix == "AUTO-"
        assert config.debounce_recompute is False
        assert config.log_level == "warn"
        assert config.backup_dir == tmp_path / "backups"
        assert config.auto_generated_predicate("AUTO-1")
        assert not config.auto_generated_predicate("XPME_1")

    def test_invalid_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("auto_generated_prefix = ", encoding="utf-8")
        with pytest.raises(ValueError):
            load_engine_config(path)

    def test_prefix_must_be_string(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("auto_generated_prefix = 3\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_engine_config(path)


class TestCollapsedGroups:

    def test_default_expanded_and_round_trip(self, tmp_path):
        path = tmp_path / "groups.toml"
        groups = load_collapsed_groups(path)
        assert not groups.is_collapsed(SceneryCategory.MESH)

        groups.set_collapsed("Mesh", True)
        assert groups.toggle(SceneryCategory.LIBRARY) is True
        save_collapsed_groups(path, groups)

        restored = load_collapsed_groups(path)
        assert restored.is_collapsed(SceneryCategory.MESH)
        assert restored.is_collapsed(SceneryCategory.LIBRARY)
        assert not restored.is_collapsed(SceneryCategory.AIRPORT)

    def test_unknown_category_ignored(self, tmp_path, capsys):
        path = tmp_path / "groups.toml"
        path.write_text("[collapsed]\nHelipad = true\nMesh = true\n", encoding="utf-8")
        groups = load_collapsed_groups(path)
        assert groups.is_collapsed(SceneryCategory.MESH)
        assert "Helipad" in capsys.readouterr().out


class TestLogging:

    def test_threshold_filters(self, capsys):
        logging_utils.set_log_level("warn")
        logging_utils.log_info("hidden")
        logging_utils.log_warn("shown", scope="scenery")
        out = capsys.readouterr().out
        assert "hidden" not in out
        assert "[warn][scenery] shown" in out

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            logging_utils.set_log_level("chatty")


def _entries():
    a = make_entry("KSEA Airport", SceneryCategory.AIRPORT, 0)
    a.duplicate_airports = ["Global Airports"]
    b = make_entry("Global Airports", SceneryCategory.DEFAULT_AIRPORT, 1, enabled=False)
    b.duplicate_airports = ["KSEA Airport"]
    c = make_entry("Ortho_Seattle", SceneryCategory.MESH, 2)
    c.duplicate_tiles = ["Ortho_Tacoma"]
    c.missing_libraries = ["opensceneryx"]
    d = make_entry("Ortho_Tacoma", SceneryCategory.MESH, 3)
    d.duplicate_tiles = ["Ortho_Seattle"]
    return [a, b, c, d]


class TestReport:

    def test_export_report(self, tmp_path):
        entries = _entries()
        output = tmp_path / "reports" / "scenery.xlsx"
        export_report(output, entries, SceneryStats.from_entries(entries))

        workbook = load_workbook(output)
        assert workbook.sheetnames == ["load_order", "conflicts", "summary"]

        order_rows = list(workbook["load_order"].iter_rows(values_only=True))
        assert order_rows[0][1] == "folder name"
        assert [row[1] for row in order_rows[1:]] == [
            "KSEA Airport", "Global Airports", "Ortho_Seattle", "Ortho_Tacoma",
        ]
        assert order_rows[2][3] == "no"
        assert order_rows[3][5] == "opensceneryx"

        conflict_rows = list(workbook["conflicts"].iter_rows(values_only=True))[1:]
        assert ("tiles", "Ortho_Seattle", "Ortho_Tacoma") in conflict_rows
        assert ("airport", "KSEA Airport", "Global Airports") in conflict_rows
        assert len(conflict_rows) == 4

        summary = dict(list(workbook["summary"].iter_rows(values_only=True))[1:])
        assert summary["total packages"] == 4
        assert summary["enabled packages"] == 3
        assert summary["packages with conflicts"] == 4
        workbook.close()

    def test_print_load_order_honours_collapsed(self, capsys):
        groups = CollapsedGroups()
        groups.set_collapsed(SceneryCategory.MESH, True)
        print_load_order(group_by_category(_entries()), groups)
        out = capsys.readouterr().out
        assert "+ Mesh (2)" in out
        assert "Ortho_Seattle" not in out
        assert "- Airport (1)" in out
        assert "KSEA Airport" in out

    def test_print_conflict_details(self, capsys):
        print_conflict_details(_entries())
        out = capsys.readouterr().out
        assert "[conflict] Overlapping scenery tiles detected:" in out
        assert "Ortho_Seattle: Ortho_Tacoma" in out
        assert "missing libraries: opensceneryx" in out

    def test_print_conflict_details_clean(self, capsys):
        print_conflict_details([make_entry("A", SceneryCategory.AIRPORT, 0)])
        out = capsys.readouterr().out
        assert "[ok] No tile conflicts found." in out
        assert "[ok] No airport conflicts found." in out
