"""Feedback Flow purchase query and aggregation engine."""

__version__ = "0.1.0"
