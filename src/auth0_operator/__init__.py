"""
Auth0 Operator - A Kubernetes operator for Auth0 tenant resources.

This operator keeps declared Auth0 resources in sync with the Auth0
Management API:
- Tenant settings
- Clients (OAuth applications) and their credential secrets
- Connections, including label-driven enabled client aggregation
- Resource servers and client grants
"""

__version__ = "0.1.0"
