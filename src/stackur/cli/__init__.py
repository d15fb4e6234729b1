"""Command line interface for stack scripts."""

from .main import build_cli, run

__all__ = ['build_cli', 'run']
