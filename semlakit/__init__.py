"""Encrypted model libraries, a licensing protocol parser and TLS message helpers."""

__version__ = "0.1.0"