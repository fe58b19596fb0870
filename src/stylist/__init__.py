"""Language Stylist: rewrite clipboard text in a chosen style via a remote model."""

__version__ = "0.1.0"
