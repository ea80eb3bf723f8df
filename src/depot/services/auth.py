"""
API key authentication.

Implements the authentication gate consulted before every upload, delete
and relist request.
"""

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

# Header carrying the publish credential
API_KEY_HEADER = "X-NuGet-ApiKey"


def hash_api_key(api_key: str, salt: str | None = None) -> str:
    """
    Hash an API key for comparison.

    Uses SHA-256 HMAC with a salt so both sides of a comparison have
    the same length regardless of input.

    Args:
        api_key: The API key to hash
        salt: Optional salt (uses default if not provided)

    Returns:
        Hex-encoded hash string
    """
    salt = salt or "depot-api-key-salt"
    hmac_obj = hmac.new(
        salt.encode("utf-8"),
        api_key.encode("utf-8"),
        hashlib.sha256,
    )
    return hmac_obj.hexdigest()


class ApiKeyAuthenticationService:
    """
    Authenticates publish requests against a single configured API key.

    When no key is configured every caller is accepted, including callers
    that send no key at all.
    """

    def __init__(self, api_key: str | None = None):
        self._api_key_hash = hash_api_key(api_key) if api_key else None
        if self._api_key_hash is None:
            logger.warning(
                "No API key configured (DEPOT_API_KEY not set); "
                "all publish, delete and relist requests will be accepted"
            )

    @property
    def requires_api_key(self) -> bool:
        return self._api_key_hash is not None

    def authenticate(self, api_key: str | None) -> bool:
        """
        Check a caller-supplied API key.

        Args:
            api_key: The key from the request header, or None if absent

        Returns:
            True if the key is accepted
        """
        if self._api_key_hash is None:
            return True

        if not api_key:
            logger.debug("Publish request without API key rejected")
            return False

        # Use constant-time comparison
        if hmac.compare_digest(hash_api_key(api_key), self._api_key_hash):
            return True

        logger.debug("Publish request with invalid API key rejected")
        return False
