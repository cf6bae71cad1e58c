"""Constants for the DevicePilot API client."""

VERSION = "1.0.0"

# Configuration Keys
CONF_TOKEN = "token"
CONF_API_URL = "api_url"
CONF_TIMEOUT = "timeout"
CONF_RETRY_COUNT = "retry_count"
CONF_RETRY_DELAY = "retry_delay"

# Defaults
DEFAULT_API_URL = "https://api.devicepilot.com"
DEFAULT_TIMEOUT = 100.0
DEFAULT_RETRY_COUNT = 3
DEFAULT_RETRY_DELAY = 3.0

# Headers
AUTH_SCHEME = "Token"
CLIENT_HEADER = "X-API-Client"
CLIENT_NAME = f"devicepilot-api-client/{VERSION}"
JSON_MEDIA_TYPE = "application/json"

# --- INGESTION ---
DEVICES_ENDPOINT = "/devices"
BULK_CHUNK_SIZE = 500

# Reserved keys of the device wire object
KEY_ID = "$id"
KEY_TIMESTAMP = "$ts"
RESERVED_KEYS = frozenset({KEY_ID, KEY_TIMESTAMP})

# Bad Gateway, Service Unavailable, Gateway Timeout
TRANSIENT_STATUSES = frozenset({502, 503, 504})
