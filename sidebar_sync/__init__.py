"""State-synchronization core for the sidebar assistant."""

__version__ = "0.1.0"
