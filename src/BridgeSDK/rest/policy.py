# === NAVMAP v1 ===
# {
#   "module": "BridgeSDK.rest.policy",
#   "purpose": "HTTP policy constants and defaults.",
#   "sections": []
# }
# === /NAVMAP ===

"""HTTP policy constants and defaults.

Defines timeout budgets, header names, endpoint paths, and stage names for the
Bridge REST transport stack.  Values follow what the Bridge server expects;
timeouts are generous because some administrative calls (creating studies,
exporting data) take a long time server-side.
"""

# ============================================================================
# Timeout Budgets (seconds)
# ============================================================================

#: Connection establishment timeout
#: The server itself gives up after 30 seconds, past this it is pointless to wait
HTTP_CONNECT_TIMEOUT = 30.0

#: Read timeout (time between data packets on established connection)
HTTP_READ_TIMEOUT = 120.0

#: Write timeout (time to send request body)
HTTP_WRITE_TIMEOUT = 120.0

#: Pool timeout (acquiring a connection from the pool)
HTTP_POOL_TIMEOUT = 5.0


# ============================================================================
# Headers
# ============================================================================

#: Header carrying the session token on authenticated calls
SESSION_HEADER = "Bridge-Session"

#: Header the server sets to "deprecated" on endpoints scheduled for removal
API_STATUS_HEADER = "Bridge-Api-Status"

#: Value of API_STATUS_HEADER signalling deprecation
API_STATUS_DEPRECATED = "deprecated"

#: Standard warning header, surfaced to logs without altering control flow
WARNING_HEADER = "Warning"

#: Headers whose values must never reach logs
SENSITIVE_HEADERS = frozenset({SESSION_HEADER.lower(), "authorization", "cookie"})


# ============================================================================
# Endpoints
# ============================================================================

SIGN_IN_PATH = "/v3/auth/signIn"
SIGN_OUT_PATH = "/v3/auth/signOut"


# ============================================================================
# Stage Names
# ============================================================================

STAGE_HEADERS = "headers"
STAGE_SESSION = "session"
STAGE_WARNINGS = "warnings"
STAGE_CLASSIFY = "classify"
STAGE_LOG = "log"

#: Outermost-first order for unauthenticated transports
UNAUTHENTICATED_STAGE_ORDER = (STAGE_HEADERS, STAGE_WARNINGS, STAGE_CLASSIFY, STAGE_LOG)

#: Outermost-first order for authenticated transports
AUTHENTICATED_STAGE_ORDER = (
    STAGE_HEADERS,
    STAGE_SESSION,
    STAGE_WARNINGS,
    STAGE_CLASSIFY,
    STAGE_LOG,
)


# ============================================================================
# Security
# ============================================================================

#: Require TLS verification for HTTPS connections
TLS_VERIFY_ENABLED = True

#: Maximum automatic attempts for a call guarded by the session attacher
MAX_AUTHENTICATED_ATTEMPTS = 2


__all__ = [
    "HTTP_CONNECT_TIMEOUT",
    "HTTP_READ_TIMEOUT",
    "HTTP_WRITE_TIMEOUT",
    "HTTP_POOL_TIMEOUT",
    "SESSION_HEADER",
    "API_STATUS_HEADER",
    "API_STATUS_DEPRECATED",
    "WARNING_HEADER",
    "SENSITIVE_HEADERS",
    "SIGN_IN_PATH",
    "SIGN_OUT_PATH",
    "STAGE_HEADERS",
    "STAGE_SESSION",
    "STAGE_WARNINGS",
    "STAGE_CLASSIFY",
    "STAGE_LOG",
    "UNAUTHENTICATED_STAGE_ORDER",
    "AUTHENTICATED_STAGE_ORDER",
    "TLS_VERIFY_ENABLED",
    "MAX_AUTHENTICATED_ATTEMPTS",
]
