"""Computerized adaptive testing engine on the 3PL IRT model."""

__version__ = "0.1.0"
