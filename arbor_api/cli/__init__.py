"""Command line interface."""

from arbor_api.cli.main import cli


__all__ = ["cli"]
