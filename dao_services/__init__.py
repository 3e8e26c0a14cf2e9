"""
Shareholder DAO services

Deterministic governance core for shareholder-style organizations.
"""

__version__ = "1.0.0"
