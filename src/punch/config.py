"""Configuration management for punch.

Settings live in ``config.toml`` inside the config directory
(``~/.config/punch`` unless ``PUNCH_CONFIG_DIR`` is set). Environment
variables, optionally from a ``.env`` file, override the database path.

Example::

    [settings]
    editor = "vim"
    default_currency = "EUR"
    default_remote = "origin"
    autosync = ["end"]

    [remotes.origin]
    type = "spreadsheet"
    spreadsheet_id = "1AbC..."
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

import os
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

import pydantic
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

from .db.schemas import DEFAULT_CURRENCY
from .errors import ConfigError

# Load .env file if present
load_dotenv()

CONFIG_FILE_NAME = "config.toml"
DB_FILE_NAME = "punch.db"
SUPPORTED_ENGINES = ("sqlite3",)
AUTOSYNC_EVENTS = ("start", "end")

_COLUMN_RE = re.compile(r"^[A-Z]{1,3}$")


# ============================================================================
# Remote definitions
# ============================================================================


class ColumnMapping(BaseModel):
    """Spreadsheet column letters for each session field."""

    id: str
    client: str
    date: str
    start_time: str
    end_time: str
    end_date: Optional[str] = None
    total_time: Optional[str] = None
    note: Optional[str] = None
    earnings: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def upper_letters(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
            if not _COLUMN_RE.match(v):
                raise ValueError(f"invalid column {v!r}")
        return v

    @model_validator(mode="after")
    def distinct_columns(self) -> "ColumnMapping":
        used = [c for c in self.model_dump().values() if c is not None]
        if len(used) != len(set(used)):
            raise ValueError("each field needs its own column")
        return self

    def items(self) -> list[tuple[str, str]]:
        """(field, column) pairs for the mapped fields."""
        return [(k, v) for k, v in self.model_dump().items() if v is not None]


class SpreadsheetRemote(BaseModel):
    """A Google Sheets remote."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["spreadsheet"]
    spreadsheet_id: str = Field(..., min_length=1)
    sheet_name: str = Field(..., min_length=1)
    columns: ColumnMapping
    credentials_file: Optional[Path] = None
    token_file: Optional[Path] = None
    header_rows: int = Field(1, ge=0)
    batch_size: int = Field(100, gt=0)


class GitRemote(BaseModel):
    """A YAML file tracked in a git working copy."""

    model_config = ConfigDict(extra="ignore")

    type: Literal["git"]
    path: Path
    file: str = "sessions.yaml"
    branch: str = "main"
    remote: str = "origin"
    upstream: bool = True


RemoteConfig = Annotated[Union[SpreadsheetRemote, GitRemote], Field(discriminator="type")]

REMOTE_KINDS = ("spreadsheet", "git")

_remote_adapter: TypeAdapter = TypeAdapter(RemoteConfig)


def parse_remote(name: str, data: dict, base_dir: Path) -> Union[SpreadsheetRemote, GitRemote]:
    """Validate one ``[remotes.<name>]`` table.

    Relative paths are resolved against base_dir.

    Raises:
        ConfigError: If the type is unsupported or a field is invalid
    """
    if not isinstance(data, dict):
        raise ConfigError(f"remote {name!r} must be a table")
    kind = data.get("type")
    if kind not in REMOTE_KINDS:
        raise ConfigError(f"remote {name!r}: unsupported type {kind!r}")
    try:
        remote = _remote_adapter.validate_python(data)
    except pydantic.ValidationError as e:
        raise ConfigError(f"remote {name!r}: {e}") from e

    def resolve(path: Optional[Path]) -> Optional[Path]:
        if path is None:
            return None
        path = path.expanduser()
        return path if path.is_absolute() else base_dir / path

    if isinstance(remote, SpreadsheetRemote):
        return remote.model_copy(
            update={
                "credentials_file": resolve(remote.credentials_file),
                "token_file": resolve(remote.token_file),
            }
        )
    return remote.model_copy(update={"path": resolve(remote.path)})


# ============================================================================
# Application config
# ============================================================================


def default_config_dir() -> Path:
    return Path(
        os.environ.get("PUNCH_CONFIG_DIR", str(Path.home() / ".config" / "punch"))
    ).expanduser()


@dataclass
class Config:
    """Application configuration."""

    config_dir: Path

    # Database
    db_engine: str
    db_path: Path

    # Settings
    editor: Optional[str] = None
    default_currency: str = DEFAULT_CURRENCY
    default_remote: Optional[str] = None
    autosync: list[str] = field(default_factory=list)

    # Remotes by name
    remotes: dict[str, Union[SpreadsheetRemote, GitRemote]] = field(default_factory=dict)

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "Config":
        """Load configuration from the config directory and environment.

        A missing config file yields the defaults.

        Raises:
            ConfigError: If the file is malformed or fails validation
        """
        config_dir = Path(config_dir) if config_dir else default_config_dir()
        config_file = config_dir / CONFIG_FILE_NAME

        data: dict = {}
        if config_file.exists():
            try:
                with open(config_file, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"{config_file}: {e}") from e

        database = data.get("database", {})
        settings = data.get("settings", {})

        engine = database.get("engine", "sqlite3")
        if engine not in SUPPORTED_ENGINES:
            raise ConfigError(f"unsupported database engine {engine!r}")

        db_path_str = os.environ.get("PUNCH_DB_PATH") or database.get("path")
        db_path = Path(db_path_str).expanduser() if db_path_str else config_dir / DB_FILE_NAME

        remotes = {
            name: parse_remote(name, remote, config_dir)
            for name, remote in data.get("remotes", {}).items()
        }

        autosync = settings.get("autosync", [])
        if isinstance(autosync, str):
            autosync = [autosync]

        config = cls(
            config_dir=config_dir,
            db_engine=engine,
            db_path=db_path,
            editor=settings.get("editor") or None,
            default_currency=str(settings.get("default_currency") or DEFAULT_CURRENCY).upper(),
            default_remote=settings.get("default_remote") or None,
            autosync=list(autosync),
            remotes=remotes,
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Check cross-field settings.

        Autosync is only meaningful with a usable default remote, so its
        events are only checked when the default remote exists.
        """
        if self.default_remote and self.default_remote in self.remotes:
            invalid = [e for e in self.autosync if e not in AUTOSYNC_EVENTS]
            if invalid:
                raise ConfigError(
                    f"invalid autosync event(s) {invalid}; "
                    f"expected any of {list(AUTOSYNC_EVENTS)}"
                )

    def autosync_enabled(self, event: str) -> bool:
        """Whether a sync should run after the given start/end event."""
        return (
            self.default_remote is not None
            and self.default_remote in self.remotes
            and event in self.autosync
        )

    def get_remote(self, name: Optional[str] = None) -> tuple[str, Union[SpreadsheetRemote, GitRemote]]:
        """Pick a remote by name, falling back to the default remote.

        Raises:
            ConfigError: If no name is given and there is no default, or the
                remote is not configured
        """
        name = name or self.default_remote
        if not name:
            raise ConfigError("must specify remote (no default_remote configured)")
        if name not in self.remotes:
            raise ConfigError(f"remote {name!r} not found")
        return name, self.remotes[name]


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def reset_config() -> None:
    """Reset the global config instance. Used for testing."""
    global _config
    _config = None
