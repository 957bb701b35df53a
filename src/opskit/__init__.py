"""Command-line clients for the Mackerel monitoring API and GitHub team management."""

__version__ = "0.1.0"
