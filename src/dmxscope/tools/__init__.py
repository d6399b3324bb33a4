"""Development helpers (opt-in timing instrumentation via ``DMXSCOPE_DEBUG``)."""
