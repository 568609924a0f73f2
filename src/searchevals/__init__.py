"""search-evals — evaluate search provider APIs against a fixed query set."""

__version__ = "0.1.0"
