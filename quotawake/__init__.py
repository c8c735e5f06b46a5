"""
Quotawake - adaptive usage-window monitor.

Keeps per-account quota usage fresh and wakes dormant usage windows,
scheduling each poll around the next expected window reset.
"""

__version__ = "0.1.0"
