"""CardLink: client library and CLI for the business card sharing backend."""

__version__ = "0.1.0"
