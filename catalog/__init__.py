"""
In-memory multi-tenant book catalog.

This package holds the stateful core of the service:
- Signed session tokens (issue and verify)
- Per-user session registry with revocation and expiry sweep
- User/tenant records and per-tenant book collections
"""
