"""Configuration for the cStor node controllers."""

from .controller_config import ControllerConfig, load_controller_config, resync_interval

__all__ = ["ControllerConfig", "load_controller_config", "resync_interval"]
