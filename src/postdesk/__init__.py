"""postdesk: a Git-backed content dashboard for an MDX blog."""

__version__ = "0.1.0"
