"""
  File with all constants in project
"""
# Inbound request limits
MAX_BODY_SIZE = 1024 * 1024  # 1 MiB
# Outbound message field that is converted from an RFC 3339 string to a timestamp
CREATION_TIME_FIELD = "creationTimeUtc"
# Device Bridge
BRIDGE_API_KEY_HEADER = "x-api-key"
BRIDGE_SEND_MESSAGE_PATH = "/devices/{device_id}/messages/events"
BRIDGE_TIMEOUT = 30.0
BRIDGE_RETRY_STATUSES = (429, 500, 502, 503, 504)
BRIDGE_RETRY_DELAY = 0.5
BRIDGE_RETRY_MAX_DELAY = 10.0
# Retry attempts used for D2C forwarding (the Bridge already retries internally)
FORWARD_RETRY_ATTEMPTS = 1
# Process environment
ENV_PORT = "PORT"
ENV_BRIDGE_URL = "BRIDGE_URL"
ENV_CONFIG_PATH = "CONFIG_PATH"
ENV_LOG_LEVEL = "LOG_LEVEL"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_LOG_LEVEL = "INFO"
# Logger name used by the process entry point
TRANSFORM_ADAPTER_LOGGER_NAME = "iotc-transform-adapter"
