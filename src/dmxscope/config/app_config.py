"""Default application paths."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class AppPaths:
    """
    Commonly used paths for recordings and configuration.

    ``DMXSCOPE_DATA_ROOT`` overrides the default ``data`` folder relative to
    the repository root and ``DMXSCOPE_CONFIG`` points at an alternate YAML
    config file, so packaged installs can store files elsewhere.
    """

    # repo_root points at the project root (one level above src/)
    repo_root: Path = Path(__file__).resolve().parents[3]
    data_root: Path = field(init=False)
    recordings: Path = field(init=False)
    config_file: Path = field(init=False)

    def __post_init__(self) -> None:
        env_data_root = os.environ.get("DMXSCOPE_DATA_ROOT")
        if env_data_root:
            self.data_root = Path(env_data_root).expanduser()
        else:
            self.data_root = self.repo_root / "data"
        self.recordings = self.data_root / "recordings"

        env_config = os.environ.get("DMXSCOPE_CONFIG")
        if env_config:
            self.config_file = Path(env_config).expanduser()
        else:
            self.config_file = self.repo_root / "dmxscope.yaml"

    def ensure(self) -> None:
        """Create directories if they do not yet exist."""
        for path in (self.data_root, self.recordings):
            path.mkdir(parents=True, exist_ok=True)
