"""Problem loaders."""

from .smt2 import HornFormatError, load_horn_file, load_horn_string

__all__ = ["HornFormatError", "load_horn_file", "load_horn_string"]
