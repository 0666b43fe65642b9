"""Latest-upload resolution for followed accounts."""

__version__ = "0.1.0"
