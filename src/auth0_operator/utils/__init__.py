"""
Utils package - Utility modules for Auth0 operator functionality.

Contains helper modules for:
- Auth0 Management API interactions
- Kubernetes resource access and event emission
- Client-side rate limiting
"""

from auth0_operator.utils.kubernetes import KubernetesGateway, matches_partition
from auth0_operator.utils.management_api import ManagementApiClient

__all__ = [
    "KubernetesGateway",
    "ManagementApiClient",
    "matches_partition",
]
