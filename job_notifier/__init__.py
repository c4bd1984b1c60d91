"""Poll remote job boards and notify about new relevant listings."""

__version__ = "1.0.0"
