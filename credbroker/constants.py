"""Protocol constants shared across credbroker."""

# Maximum age in seconds of an inbound request token, measured from ``iat``.
JWT_MAX_AGE = 300

REQUEST_ID_DELIMITER = ":"

# HMAC algorithms accepted for organization-signed request tokens.
REQUEST_TOKEN_ALGORITHMS = ["HS256", "HS384", "HS512"]

DEFAULT_ISSUER = "credbroker"

DEFAULT_CONNECTORS = ["credbroker.connectors.demo:DemoConnector"]

REDIS_CHANNEL_PREFIX = "credbroker:requests:"
