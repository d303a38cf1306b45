"""Unit tests — loader.py (command file loading)."""

from __future__ import annotations

from pathlib import Path

import pytest

from execvars.exceptions import ConfigFileError
from execvars.loader import load_command_entries, parse_entry


@pytest.mark.unit
class TestLoadCommandEntries:
    def test_loads_entries(self, command_file: Path) -> None:
        entries = load_command_entries(command_file)
        assert entries == [
            {"var": "/sys/info/uptime", "exec": "uptime"},
            {"var": "/sys/test/echo", "exec": "echo hello"},
        ]

    def test_accepts_str_path(self, command_file: Path) -> None:
        assert len(load_command_entries(str(command_file))) == 2

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigFileError) as exc_info:
            load_command_entries(tmp_path / "nope.json")
        assert exc_info.value.path.endswith("nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        f = tmp_path / "bad.json"
        f.write_text('{"commands": [', encoding="utf-8")
        with pytest.raises(ConfigFileError, match="invalid JSON"):
            load_command_entries(f)

    def test_top_level_must_be_object(self, tmp_path: Path) -> None:
        f = tmp_path / "list.json"
        f.write_text("[]", encoding="utf-8")
        with pytest.raises(ConfigFileError, match="object"):
            load_command_entries(f)

    def test_commands_must_be_array(self, tmp_path: Path) -> None:
        f = tmp_path / "obj.json"
        f.write_text('{"commands": {"var": "x"}}', encoding="utf-8")
        with pytest.raises(ConfigFileError, match="array"):
            load_command_entries(f)

    def test_missing_commands_key(self, tmp_path: Path) -> None:
        f = tmp_path / "empty.json"
        f.write_text("{}", encoding="utf-8")
        with pytest.raises(ConfigFileError):
            load_command_entries(f)

    def test_non_object_items_dropped(self, tmp_path: Path) -> None:
        f = tmp_path / "mixed.json"
        f.write_text(
            '{"commands": ["uptime", 3, {"var": "/x", "exec": "date"}, null]}',
            encoding="utf-8",
        )
        assert load_command_entries(f) == [{"var": "/x", "exec": "date"}]


@pytest.mark.unit
class TestParseEntry:
    def test_valid_entry(self) -> None:
        entry = parse_entry({"var": "/sys/info/uptime", "exec": "uptime"})
        assert entry is not None
        assert entry.var == "/sys/info/uptime"
        assert entry.command == "uptime"

    def test_extra_keys_ignored(self) -> None:
        entry = parse_entry({"var": "/x", "exec": "date", "comment": "clock"})
        assert entry is not None

    @pytest.mark.parametrize(
        "raw",
        [
            {"var": "/x"},
            {"exec": "date"},
            {"var": "", "exec": "date"},
            {"var": "/x", "exec": ""},
            {"var": None, "exec": "date"},
            {"var": "/x", "exec": ["ls"]},
        ],
    )
    def test_unusable_entry_returns_none(self, raw: dict) -> None:
        assert parse_entry(raw) is None
