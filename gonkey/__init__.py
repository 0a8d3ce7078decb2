"""Building blocks for declarative API tests: comparison, checkers, script running and fixture loaders."""

__version__ = "0.1.0"