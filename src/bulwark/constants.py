"""
Library-wide constants for Bulwark.

Default tuning values and event names shared by the processor, the retry
orchestrator and the circuit breaker.
"""

# Retry defaults (seconds)
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 10.0
DEFAULT_BACKOFF_FACTOR = 2.0

# Backend preset
BACKEND_RETRY_BASE_DELAY = 0.5

# Circuit breaker defaults
DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_RECOVERY_TIMEOUT = 60.0

# Session recovery
DEFAULT_REDIRECT_DELAY = 2.0
DEFAULT_LOGIN_PATH = "/login"

# HTTP-like status values carried on normalized errors
STATUS_NETWORK = 0
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_FORBIDDEN = 403
HTTP_STATUS_NOT_FOUND = 404
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_INTERNAL_ERROR = 500
HTTP_STATUS_SERVICE_UNAVAILABLE = 503

# Publish/subscribe event names
EVENT_APP_ERROR = "app-error"
EVENT_APP_OFFLINE = "app-offline"
EVENT_SESSION_EXPIRED = "session-expired"
EVENT_CRITICAL_ALERT = "critical-alert"

# Metrics
DEFAULT_METRICS_PORT = 8000

# Logging
DEFAULT_LOG_FILE_SIZE_BYTES = 10 * 1024 * 1024
MIN_LOG_FILE_SIZE_BYTES = 1024
DEFAULT_LOG_BACKUP_COUNT = 5
