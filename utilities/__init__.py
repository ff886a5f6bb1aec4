"""
Shared utilities for the catalog API.
"""
