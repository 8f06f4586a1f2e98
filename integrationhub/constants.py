REQUEST_CREATED_CHANNEL = "integration-request-created"
DEFAULT_POLL_INTERVAL = 1.0
CORRELATION_ID_HEADER = "X-Correlation-ID"
