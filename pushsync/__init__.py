"""Replicate GitHub push deliveries onto a local directory tree."""

__version__ = "0.1.0"
