"""Application-wide constants for authority-broker.

Constants that define broker behavior.
For user-configurable settings per deployment, see config.py.
"""

from platformdirs import user_config_dir

APP_NAME: str = "authority-broker"

# ============================================================================
# Identity Authority
# ============================================================================

# Root of the Azure AD authority. Tenant-less requests go through /common.
AUTHORITY_HOST_URL_BASE: str = "https://login.microsoftonline.com"
DEFAULT_AUTHORITY_HOST_URL: str = AUTHORITY_HOST_URL_BASE + "/common"

# Azure AD v1 endpoints, relative to a resolved authority URL
AUTHORIZE_ENDPOINT_PATH: str = "/oauth2/authorize"
TOKEN_ENDPOINT_PATH: str = "/oauth2/token"

# Access tokens within this many seconds of expiry are not served from cache
TOKEN_EXPIRY_SKEW_SECONDS: int = 300

# ============================================================================
# Visual Studio Online REST Service
# ============================================================================

DEFAULT_SERVICE_URL: str = "https://app.vssps.visualstudio.com"

SESSION_TOKEN_PATH: str = "/_apis/token/sessiontokens"
PROFILE_PATH: str = "/_apis/profile/profiles/me"
SERVICE_API_VERSION: str = "1.0"

# Query parameter value selecting the compact PAT variant
COMPACT_TOKEN_TYPE: str = "compact"

HTTP_JSON_CONTENT_TYPE: str = "application/json"
AUTH_SCHEME_BEARER: str = "Bearer"
AUTH_SCHEME_BASIC: str = "Basic"

# ============================================================================
# Timeouts
# ============================================================================

# Default HTTP timeout for REST calls and token endpoint requests (seconds)
DEFAULT_HTTP_TIMEOUT_SECONDS: int = 30

# Upper bound for a whole non-interactive authority exchange (seconds)
DEFAULT_AUTHORITY_TIMEOUT_SECONDS: int = 60

# Timeout validation range (seconds)
MIN_TIMEOUT_SECONDS: int = 1
MAX_TIMEOUT_SECONDS: int = 300

# ============================================================================
# Configuration & Logging
# ============================================================================

CONFIG_FILE_NAME: str = "authority_broker_config.json"

# OS-specific config directory
# - macOS: ~/Library/Application Support/authority-broker/
# - Linux: ~/.config/authority-broker/
# - Windows: %APPDATA%\authority-broker\
DEFAULT_CONFIG_DIR: str = user_config_dir(APP_NAME)

SYSTEM_LOGGER_NAME: str = "authority-broker.system"
AUTH_LOGGER_NAME: str = "authority-broker.audit.auth"

SYSTEM_LOG_FILE_NAME: str = "system.jsonl"
AUTH_LOG_FILE_NAME: str = "auth.jsonl"
