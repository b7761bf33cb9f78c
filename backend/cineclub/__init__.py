"""cineclub: shared movie watch-list, suggestions and timed votes for a chat group."""

__version__ = "0.1.0"
