"""Migration Manager - export, import and apply platform schema artifacts."""

__version__ = "0.1.0"
