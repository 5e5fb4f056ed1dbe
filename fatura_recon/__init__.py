"""Statement re-import diffing, obligation reconciliation and projection drift checks."""

__version__ = "1.0.0"
