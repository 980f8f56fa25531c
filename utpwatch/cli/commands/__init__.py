"""Subcommand implementations registered by ``utpwatch.cli.app``."""
