"""Loading and saving simulation settings as JSON overrides of config.starsim.SIMULATION."""

import json
from pathlib import Path
from typing import Optional, Union

from config import starsim as config


def default_settings() -> dict:
    return dict(config.SIMULATION)


def load_settings(path: Optional[Union[str, Path]] = None) -> dict:
    """
    Merge the JSON object stored at ``path`` over the default settings.

    A missing path, a missing file or an empty file gives the defaults.
    """
    settings = default_settings()
    if path is None:
        return settings

    path = Path(path)
    if not path.exists():
        return settings

    text = path.read_text()
    if not text.strip():
        return settings

    overrides = json.loads(text)
    if not isinstance(overrides, dict):
        raise ValueError(f"Settings file {path} must contain a JSON object")

    unknown = sorted(set(overrides) - set(settings))
    if unknown:
        raise ValueError(f"Unknown configuration key(s) in {path}: {', '.join(unknown)}")

    settings.update(overrides)
    return settings


def save_settings(path: Union[str, Path], settings: dict) -> None:
    with open(path, "w") as f:
        json.dump(settings, f, indent=2)
