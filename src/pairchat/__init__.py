"""pairchat — two-party instant messaging over a document store."""

__version__ = "0.1.0"
