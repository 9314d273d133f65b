"""Order reconciliation import and duplicate detection."""

__version__ = "0.1.0"
