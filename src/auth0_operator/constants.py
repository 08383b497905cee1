"""
Constants used throughout the Auth0 operator.

This module defines all constant values used by the operator including:
- CRD group, version and plural names
- Finalizer names for cleanup coordination
- Labels and annotations
- Event and requeue constants
"""

# Custom resource definitions
API_GROUP = "kubernetes.auth0.com"
API_VERSION = "v1"

TENANT_PLURAL = "a0tenants"
CLIENT_PLURAL = "a0clients"
CONNECTION_PLURAL = "a0connections"
RESOURCE_SERVER_PLURAL = "a0resourceservers"
CLIENT_GRANT_PLURAL = "a0clientgrants"

# Finalizer constants for cleanup coordination
# Kopf adds its own finalizer to every resource that has a delete handler
FINALIZER = "kubernetes.auth0.com/finalizer"

# Label and annotation constants
CONNECTION_LABEL_KEY = "auth0.kubernetes.com/connection"
PARTITION_ANNOTATION = "kubernetes.auth0.com/partition"
OPERATOR_LABEL_KEY = "kubernetes.auth0.com/managed-by"
OPERATOR_LABEL_VALUE = "auth0-operator"

# Event constants
REPORTING_CONTROLLER = "kubernetes.auth0.com/operator"
EVENT_ACTION_RECONCILE = "Reconcile"
EVENT_ACTION_DELETING = "Deleting"
EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
EVENT_NOTE_MAX_LENGTH = 1024

REASON_SUCCESS = "Success"
REASON_API_ERROR = "ApiError"
REASON_RATE_LIMIT = "RateLimit"
REASON_RETRY = "Retry"
REASON_INVALID = "Invalid"
REASON_AUTH_ERROR = "AuthError"
REASON_KUBERNETES_ERROR = "KubernetesError"
REASON_CONFIGURATION_ERROR = "ConfigurationError"
REASON_UNKNOWN = "Unknown"

# Requeue delays (in seconds)
RETRY_REQUEUE_DELAY = 60
RATE_LIMIT_MIN_DELAY = 60

# Management API paging
PAGE_SIZE = 100
DEFAULT_PAGE_DELAY = 0.05
DEFAULT_PAGINATION_CACHE_TTL = 300

# Token refresh happens once this fraction of the token lifetime has passed
TOKEN_REFRESH_RATIO = 0.9

# Secret keys holding tenant management credentials and client credentials
SECRET_CLIENT_ID_KEY = "clientId"
SECRET_CLIENT_SECRET_KEY = "clientSecret"

# Tenant settings fields compared for drift
TENANT_COMPARED_FIELDS = (
    "friendly_name",
    "picture_url",
    "support_url",
    "enabled_locales",
    "idle_session_lifetime",
    "session_lifetime",
    "sandbox_version",
    "sandbox_versions_available",
)

# Client ids last merged into a connection from client labels (JSON list)
LABEL_MANAGED_ANNOTATION = "kubernetes.auth0.com/label-managed-clients"
LABEL_CONFLICT_RETRIES = 3
