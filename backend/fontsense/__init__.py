"""fontsense: font intelligence pipeline."""

__version__ = "0.1.0"
