"""Front-end services: CLI and web API."""

from . import cli, web_api

__all__ = ["cli", "web_api"]
