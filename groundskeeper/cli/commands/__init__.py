"""Typer command implementations for the groundskeeper CLI."""
