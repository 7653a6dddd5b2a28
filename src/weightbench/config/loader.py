"""Campaign file loading: YAML in, validated CampaignConfig out."""

from pathlib import Path
from typing import TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from .models import CampaignConfig

T = TypeVar("T", bound=BaseModel)


class ConfigError(Exception):
    """Raised when configuration loading, validation, or parameter resolution fails."""


def load_yaml(path: Path) -> dict:
    """Read a YAML mapping; an empty file is an empty mapping.

    Raises:
        ConfigError: If the file is missing, unreadable, not YAML, or not a mapping.
    """
    try:
        text = Path(path).read_text()
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Expected a mapping at the top of {path}, got {type(data).__name__}"
        )
    return data


def load_config(path: Path, model_class: type[T]) -> T:
    data = load_yaml(path)
    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            f"Configuration validation failed for {path} "
            f"({e.error_count()} error(s)): {e}"
        ) from e


def load_campaign_config(path: Path) -> CampaignConfig:
    return load_config(path, CampaignConfig)
