import logging
import tomllib
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Self

from tmsim.scheduler import DEFAULT_DEBOUNCE, DEFAULT_DELAY

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("tmsim.toml")


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    delay: int = DEFAULT_DELAY
    debounce: int = DEFAULT_DEBOUNCE
    max_steps: int = 1_000_000
    window: int = 8

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigError(f"Setting '{field.name}' expected an integer, got {type(value).__name__}")
            if value < 0:
                raise ConfigError(f"Setting '{field.name}' must not be negative, got {value}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        known = {field.name for field in fields(cls)}
        if unknown := sorted(set(data) - known):
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")
        return cls(**data)

    def replace(self, **overrides: int | None) -> Self:
        return type(self)(**asdict(self) | {k: v for k, v in overrides.items() if v is not None})


def load_settings(path: Path | None = None) -> Settings:
    """Reads settings from a TOML file, either from its `[tmsim]` table or its top level.

    Without an explicit path `tmsim.toml` in the working directory is used if it exists, otherwise the defaults.
    """
    if path is None:
        if not CONFIG_FILE.is_file():
            return Settings()
        path = CONFIG_FILE
    try:
        data = tomllib.loads(path.read_text())
    except OSError as e:
        raise ConfigError(f"Could not read config file '{path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Config file '{path}' is not valid TOML: {e}") from e
    table = data.get("tmsim", data)
    if not isinstance(table, dict):
        raise ConfigError(f"Config file '{path}' has a malformed 'tmsim' table")
    settings = Settings.from_dict(table)
    logger.debug("Loaded settings from %s: %s", path, settings)
    return settings
