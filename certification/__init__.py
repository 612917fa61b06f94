"""Certification workflow engine for GACP certification applications."""

__version__ = "0.1.0"
