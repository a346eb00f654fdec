"""Aurora Ops authorization and session integrity core."""

__version__ = "0.1.0"
