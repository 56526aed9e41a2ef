"""Allow ``python -m issuefinder``."""

from issuefinder.cli import cli

cli()
