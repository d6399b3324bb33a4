"""Configuration objects and helpers for dmxscope.

:mod:`runtime` loads the YAML tuning knobs into :class:`MonitorConfig`;
:mod:`app_config` resolves where recordings and the config file live.
"""

from .app_config import AppPaths
from .runtime import MonitorConfig, config_from_mapping, load_config, save_config

__all__ = ["AppPaths", "MonitorConfig", "config_from_mapping", "load_config", "save_config"]
