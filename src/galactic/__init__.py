"""Galactic Alpha data pipeline: on-chain swap prices joined with astronomical conditions."""

__version__ = "0.1.0"
