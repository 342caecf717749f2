"""Link Station matching game backend."""

__version__ = "1.0.0"
