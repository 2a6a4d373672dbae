"""Tests for configuration loading."""

from pathlib import Path
from textwrap import dedent

import pytest

from punch.config import (
    ColumnMapping,
    Config,
    GitRemote,
    SpreadsheetRemote,
    get_config,
    parse_remote,
    reset_config,
)
from punch.errors import ConfigError

SPREADSHEET_REMOTE = """
[remotes.origin]
type = "spreadsheet"
spreadsheet_id = "1"
sheet_name = "Sheet1"
credentials_file = "credentials.json"

[remotes.origin.columns]
id = "A"
client = "B"
date = "C"
start_time = "D"
end_time = "E"
total_time = "F"
note = "G"
"""


def write_config(config_dir: Path, content: str) -> None:
    (config_dir / "config.toml").write_text(dedent(content))


class TestConfigDefaults:
    """Tests for loading without a config file."""

    def test_defaults(self, tmp_path):
        config = Config.load(tmp_path)

        assert config.db_engine == "sqlite3"
        assert config.db_path == tmp_path / "punch.db"
        assert config.editor is None
        assert config.default_currency == "USD"
        assert config.default_remote is None
        assert config.autosync == []
        assert config.remotes == {}

    def test_config_dir_from_environment(self, isolated_config):
        assert get_config().config_dir == isolated_config

    def test_db_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("PUNCH_DB_PATH", str(tmp_path / "elsewhere.db"))
        assert Config.load(tmp_path).db_path == tmp_path / "elsewhere.db"

    def test_get_config_is_cached(self):
        assert get_config() is get_config()
        first = get_config()
        reset_config()
        assert get_config() is not first


class TestConfigFile:
    """Tests for reading config.toml."""

    def test_settings(self, tmp_path):
        write_config(
            tmp_path,
            """
            [settings]
            editor = "nano"
            default_currency = "eur"
            """,
        )

        config = Config.load(tmp_path)

        assert config.editor == "nano"
        assert config.default_currency == "EUR"

    def test_database_section(self, tmp_path):
        write_config(
            tmp_path,
            """
            [database]
            engine = "sqlite3"
            path = "/tmp/custom.db"
            """,
        )
        assert Config.load(tmp_path).db_path == Path("/tmp/custom.db")

    def test_unsupported_engine(self, tmp_path):
        write_config(tmp_path, '[database]\nengine = "postgres"\n')
        with pytest.raises(ConfigError, match="engine"):
            Config.load(tmp_path)

    def test_malformed_toml(self, tmp_path):
        write_config(tmp_path, "[settings\n")
        with pytest.raises(ConfigError):
            Config.load(tmp_path)

    def test_spreadsheet_remote(self, tmp_path):
        write_config(tmp_path, SPREADSHEET_REMOTE)

        config = Config.load(tmp_path)

        remote = config.remotes["origin"]
        assert isinstance(remote, SpreadsheetRemote)
        assert remote.type == "spreadsheet"
        assert remote.columns.note == "G"
        assert remote.credentials_file == tmp_path / "credentials.json"

    def test_git_remote(self, tmp_path):
        write_config(
            tmp_path,
            """
            [remotes.backup]
            type = "git"
            path = "sessions-repo"
            upstream = false
            """,
        )

        remote = Config.load(tmp_path).remotes["backup"]

        assert isinstance(remote, GitRemote)
        assert remote.path == tmp_path / "sessions-repo"
        assert remote.file == "sessions.yaml"
        assert remote.upstream is False

    def test_unsupported_remote_type(self, tmp_path):
        write_config(tmp_path, '[remotes.origin]\ntype = "shrek"\n')
        with pytest.raises(ConfigError, match="unsupported type 'shrek'"):
            Config.load(tmp_path)

    def test_remote_missing_field(self, tmp_path):
        write_config(tmp_path, '[remotes.origin]\ntype = "spreadsheet"\nsheet_name = "S"\n')
        with pytest.raises(ConfigError, match="remote 'origin'"):
            Config.load(tmp_path)


class TestAutosync:
    """Tests for autosync settings."""

    def test_validated_when_default_remote_set(self, tmp_path):
        write_config(
            tmp_path,
            '[settings]\ndefault_remote = "origin"\nautosync = ["start", "lunch"]\n'
            + SPREADSHEET_REMOTE,
        )
        with pytest.raises(ConfigError, match="autosync"):
            Config.load(tmp_path)

    def test_valid_events(self, tmp_path):
        write_config(
            tmp_path,
            '[settings]\ndefault_remote = "origin"\nautosync = ["start"]\n'
            + SPREADSHEET_REMOTE,
        )

        config = Config.load(tmp_path)

        assert config.autosync_enabled("start")
        assert not config.autosync_enabled("end")

    def test_not_validated_without_default_remote(self, tmp_path):
        write_config(tmp_path, '[settings]\nautosync = ["lunch"]\n' + SPREADSHEET_REMOTE)

        config = Config.load(tmp_path)

        assert not config.autosync_enabled("lunch")

    def test_not_validated_when_default_remote_missing(self, tmp_path):
        write_config(
            tmp_path, '[settings]\ndefault_remote = "not-exists"\nautosync = ["lunch"]\n'
        )

        config = Config.load(tmp_path)

        assert config.default_remote == "not-exists"
        assert not config.autosync_enabled("lunch")

    def test_single_event_string(self, tmp_path):
        write_config(
            tmp_path,
            '[settings]\ndefault_remote = "origin"\nautosync = "end"\n' + SPREADSHEET_REMOTE,
        )
        assert Config.load(tmp_path).autosync == ["end"]


class TestGetRemote:
    """Tests for choosing a remote."""

    def test_default_remote(self, tmp_path):
        write_config(tmp_path, '[settings]\ndefault_remote = "origin"\n' + SPREADSHEET_REMOTE)

        name, remote = Config.load(tmp_path).get_remote()

        assert name == "origin"
        assert remote.spreadsheet_id == "1"

    def test_no_remote_and_no_default(self, tmp_path):
        with pytest.raises(ConfigError, match="must specify remote"):
            Config.load(tmp_path).get_remote()

    def test_unknown_remote(self, tmp_path):
        write_config(tmp_path, SPREADSHEET_REMOTE)
        with pytest.raises(ConfigError, match="'upstream' not found"):
            Config.load(tmp_path).get_remote("upstream")


class TestColumnMapping:
    """Tests for spreadsheet column validation."""

    def test_letters_upper_cased(self):
        columns = ColumnMapping(id="a", client="b", date="c", start_time="d", end_time="e")
        assert columns.id == "A"
        assert columns.items() == [
            ("id", "A"),
            ("client", "B"),
            ("date", "C"),
            ("start_time", "D"),
            ("end_time", "E"),
        ]

    def test_invalid_letter(self, tmp_path):
        data = {
            "type": "spreadsheet",
            "spreadsheet_id": "1",
            "sheet_name": "S",
            "columns": {"id": "1", "client": "B", "date": "C", "start_time": "D", "end_time": "E"},
        }
        with pytest.raises(ConfigError):
            parse_remote("origin", data, tmp_path)

    def test_shared_column(self, tmp_path):
        data = {
            "type": "spreadsheet",
            "spreadsheet_id": "1",
            "sheet_name": "S",
            "columns": {"id": "A", "client": "A", "date": "C", "start_time": "D", "end_time": "E"},
        }
        with pytest.raises(ConfigError):
            parse_remote("origin", data, tmp_path)
