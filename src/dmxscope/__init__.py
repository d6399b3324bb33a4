"""dmxscope: Art-Net universe monitor, recorder, and player.

Subpackages:
- :mod:`dmxscope.core` holds the live state (history, registry, recording,
  playback) and the :class:`~dmxscope.core.monitor.MonitorSession` that owns it.
- :mod:`dmxscope.dataio` reads and writes recordings (JSON Lines and WAV).
- :mod:`dmxscope.net` speaks ArtDMX over UDP.
- :mod:`dmxscope.config` loads YAML tuning knobs and resolves data paths.
"""

__version__ = "0.3.0"
