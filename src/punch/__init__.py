"""punch - track work sessions per client and sync them with a remote."""

__version__ = "0.1.0"
