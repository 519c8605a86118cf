"""Configuration file loader."""

from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from filestore.core.config.models import FileStoreConfig


def load_config(config_path: Union[str, Path]) -> FileStoreConfig:
    """
    Load a file store configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Parsed FileStoreConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        config_data = yaml.safe_load(f) or {}

    try:
        return FileStoreConfig(**config_data)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}")
