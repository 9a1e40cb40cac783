"""Social Marketer: daily wisdom distribution to social platforms."""

__version__ = "1.0.0"
