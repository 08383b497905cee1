"""
Service layer for the Auth0 operator.

This package holds the reconciliation engine and the caches it relies on,
separated from the kopf handler layer.
"""
