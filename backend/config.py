"""Configuration loading.

The YAML files under ``conf/`` are composed with Hydra once at startup and the
resulting DictConfig is handed to ``create_app``; nothing reads settings from
module globals.
"""

from pathlib import Path
from typing import List, Optional

from hydra import compose, initialize_config_dir
from omegaconf import DictConfig, OmegaConf

CONFIG_DIR = Path(__file__).resolve().parent / "conf"


def load_config(config_name: str = "main", overrides: Optional[List[str]] = None) -> DictConfig:
    """Compose ``conf/<config_name>.yaml`` with optional Hydra-style overrides."""
    with initialize_config_dir(config_dir=str(CONFIG_DIR), version_base=None):
        cfg = compose(config_name=config_name, overrides=overrides or [])
    OmegaConf.resolve(cfg)
    return cfg
