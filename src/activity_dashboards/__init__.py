"""Dashboard generation for logged activities."""

__version__ = "0.3.0"
