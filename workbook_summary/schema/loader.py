"""Config loader - YAML serialization and deserialization for PipelineConfig.

Provides round-trip save/load so field lists, the AM sheet contract and the
weekday threshold table can be reviewed and edited as YAML.
"""

from pathlib import Path

import yaml

from .models import PipelineConfig


def save_config(config: PipelineConfig, path: str | Path) -> None:
    """Serialize a PipelineConfig to a YAML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.to_dict()
    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False,
                  allow_unicode=True, width=120)


def load_config(path: str | Path | None = None) -> PipelineConfig:
    """Deserialize a PipelineConfig from a YAML file (defaults if *path* is None)."""
    if path is None:
        return PipelineConfig()
    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is not None and not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping, "
                         f"got {type(data).__name__}")
    return PipelineConfig.from_dict(data)
