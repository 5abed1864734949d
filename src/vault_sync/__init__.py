"""vault-sync: mirror a GitHub-hosted markdown vault into a local document store."""

__version__ = "0.4.0"
