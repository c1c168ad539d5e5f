"""Document preview generation, delivery and legacy docstore migration service."""

__version__ = "0.1.0"
