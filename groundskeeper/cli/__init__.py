"""Groundskeeper CLI — Typer-based command-line interface.

Provides the ``groundskeeper`` command with ``auto``, ``pull`` and ``push``
subcommands.  Output uses Rich; logging goes to stderr through a
``RichHandler``.
"""
