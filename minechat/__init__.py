"""MineChat command-line chat client."""

__version__ = "0.1.1"
