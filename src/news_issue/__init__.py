"""Newsletter issue assembly pipeline."""

__version__ = "0.1.0"
