"""
FastAPI application for the Tenant Book Catalog.

This package provides the HTTP surface for:
- User registration and login
- Session renewal, listing and revocation
- Per-tenant book management
- The authorization gate in front of every protected route
"""
