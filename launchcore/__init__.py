"""Query engine, extension registry and usage ranking for a keyboard launcher."""

__version__ = "0.1.0"