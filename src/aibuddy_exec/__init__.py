"""aibuddy-exec: run AI-suggested shell commands with bounded recovery."""

__version__ = "0.1.0"
