"""Core module - configuration and observability shared by the engine, API and CLI."""

__version__ = "1.0.0"
