"""stackhub - lifecycle manager for isolated backend service bundles."""

__version__ = "0.1.0"
