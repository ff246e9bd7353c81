"""sentinel.discover: entry-point for ``python -m sentinel.discover``."""
