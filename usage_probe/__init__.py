"""Claude usage probe: session / weekly quota snapshots from the web API or the CLI."""

__version__ = "0.1.0"
