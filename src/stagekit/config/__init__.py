"""Configuration exports."""

from stagekit.config.loader import DEFAULT_CONFIG_PATH, load_app_config
from stagekit.config.models import AppConfig, FlowConfig
from stagekit.config.store_factory import StoreFactory

__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "FlowConfig",
    "StoreFactory",
    "load_app_config",
]
