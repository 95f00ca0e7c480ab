"""Real-time instrument tuner: spectral pitch estimate, note and string mapping."""

__version__ = "0.1.0"
