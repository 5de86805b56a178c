"""Similar-listing recommendations over a shared document store."""

__version__ = "0.3.0"
