"""bitlearn: generate, version and verify bite-sized learning topics."""

__version__ = "1.0.0"
