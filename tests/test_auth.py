"""Tests for API key authentication."""

from depot.services.auth import API_KEY_HEADER, ApiKeyAuthenticationService, hash_api_key


class TestHashApiKey:
    """Tests for hash_api_key."""

    def test_deterministic(self) -> None:
        assert hash_api_key("key") == hash_api_key("key")

    def test_different_keys_differ(self) -> None:
        assert hash_api_key("key-a") != hash_api_key("key-b")

    def test_salt_changes_hash(self) -> None:
        assert hash_api_key("key", salt="one") != hash_api_key("key", salt="two")

    def test_hex_sha256_length(self) -> None:
        assert len(hash_api_key("key")) == 64


class TestApiKeyAuthenticationService:
    """Tests for ApiKeyAuthenticationService."""

    def test_header_name(self) -> None:
        assert API_KEY_HEADER == "X-NuGet-ApiKey"

    def test_accepts_configured_key(self) -> None:
        service = ApiKeyAuthenticationService("secret")
        assert service.requires_api_key
        assert service.authenticate("secret")

    def test_rejects_wrong_key(self) -> None:
        service = ApiKeyAuthenticationService("secret")
        assert not service.authenticate("Secret")
        assert not service.authenticate("wrong")

    def test_rejects_missing_key(self) -> None:
        service = ApiKeyAuthenticationService("secret")
        assert not service.authenticate(None)
        assert not service.authenticate("")

    def test_no_key_configured_accepts_everyone(self) -> None:
        service = ApiKeyAuthenticationService(None)
        assert not service.requires_api_key
        assert service.authenticate(None)
        assert service.authenticate("anything")

    def test_empty_key_configured_accepts_everyone(self) -> None:
        service = ApiKeyAuthenticationService("")
        assert service.authenticate(None)
