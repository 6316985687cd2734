"""Cleaning pipeline for property-sale records."""

__version__ = "0.1.0"
