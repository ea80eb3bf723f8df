"""Tests for the publish protocol handler."""

import json
from unittest.mock import MagicMock

import pytest

from depot.api.publish import PackagePublishHandler, PublishOutcome
from depot.api.routes.publish import outcome_response
from depot.core.models import PackageVersion

from conftest import TEST_API_KEY, RecordingIndexer


@pytest.fixture
def handler(
    mock_authentication: MagicMock,
    mock_packages: MagicMock,
    mock_deletion: MagicMock,
    recording_indexer: RecordingIndexer,
) -> PackagePublishHandler:
    return PackagePublishHandler(mock_authentication, recording_indexer, mock_packages, mock_deletion)


class TestPublishOutcome:
    """Tests for PublishOutcome."""

    @pytest.mark.parametrize(
        "outcome,status_code",
        [
            (PublishOutcome.CREATED, 201),
            (PublishOutcome.NO_CONTENT, 204),
            (PublishOutcome.OK, 200),
            (PublishOutcome.BAD_REQUEST, 400),
            (PublishOutcome.UNAUTHORIZED, 401),
            (PublishOutcome.NOT_FOUND, 404),
            (PublishOutcome.CONFLICT, 409),
            (PublishOutcome.PAYLOAD_TOO_LARGE, 413),
            (PublishOutcome.INTERNAL_SERVER_ERROR, 500),
        ],
    )
    def test_status_codes(self, outcome: PublishOutcome, status_code: int) -> None:
        assert outcome.status_code == status_code
        assert outcome.is_success is (status_code < 400)

    def test_success_response_is_empty(self) -> None:
        response = outcome_response(PublishOutcome.CREATED)
        assert response.status_code == 201
        assert response.body == b""

    def test_error_response_envelope(self) -> None:
        response = outcome_response(PublishOutcome.CONFLICT)
        assert response.status_code == 409
        assert json.loads(response.body) == {
            "error": {"type": "conflict", "message": "Package version already exists"}
        }

    def test_every_error_outcome_has_message(self) -> None:
        for outcome in PublishOutcome:
            if not outcome.is_success:
                assert outcome_response(outcome).status_code == outcome.status_code


class TestPackagePublishHandler:
    """Tests for PackagePublishHandler."""

    @pytest.mark.parametrize("missing", range(4))
    def test_requires_collaborators(self, missing: int) -> None:
        collaborators = [MagicMock(), MagicMock(), MagicMock(), MagicMock()]
        collaborators[missing] = None

        with pytest.raises(ValueError):
            PackagePublishHandler(*collaborators)

    @pytest.mark.asyncio
    async def test_delete(self, handler: PackagePublishHandler, mock_deletion: MagicMock) -> None:
        outcome = await handler.delete("Foo", "1.0.0", TEST_API_KEY)

        assert outcome is PublishOutcome.NO_CONTENT
        mock_deletion.try_delete.assert_called_once_with("Foo", PackageVersion.parse("1.0.0"))

    @pytest.mark.asyncio
    async def test_delete_missing(self, handler: PackagePublishHandler, mock_deletion: MagicMock) -> None:
        mock_deletion.try_delete.return_value = False
        assert await handler.delete("Foo", "1.0.0", TEST_API_KEY) is PublishOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_unauthorized(self, handler: PackagePublishHandler, mock_deletion: MagicMock) -> None:
        assert await handler.delete("Foo", "1.0.0", None) is PublishOutcome.UNAUTHORIZED
        mock_deletion.try_delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_malformed_version_precedes_auth(
        self, handler: PackagePublishHandler, mock_authentication: MagicMock
    ) -> None:
        assert await handler.delete("Foo", "garbage", None) is PublishOutcome.NOT_FOUND
        mock_authentication.authenticate.assert_not_called()

    @pytest.mark.asyncio
    async def test_relist(self, handler: PackagePublishHandler, mock_packages: MagicMock) -> None:
        outcome = await handler.relist("Foo", "2.0", TEST_API_KEY)

        assert outcome is PublishOutcome.OK
        mock_packages.relist.assert_called_once_with("Foo", PackageVersion.parse("2.0.0"))

    @pytest.mark.asyncio
    async def test_relist_missing(self, handler: PackagePublishHandler, mock_packages: MagicMock) -> None:
        mock_packages.relist.return_value = False
        assert await handler.relist("Foo", "2.0.0", TEST_API_KEY) is PublishOutcome.NOT_FOUND

    @pytest.mark.asyncio
    async def test_relist_unauthorized(self, handler: PackagePublishHandler, mock_packages: MagicMock) -> None:
        assert await handler.relist("Foo", "2.0.0", "wrong") is PublishOutcome.UNAUTHORIZED
        mock_packages.relist.assert_not_called()

    @pytest.mark.asyncio
    async def test_relist_malformed_version_precedes_auth(
        self, handler: PackagePublishHandler, mock_authentication: MagicMock
    ) -> None:
        assert await handler.relist("Foo", "", TEST_API_KEY) is PublishOutcome.NOT_FOUND
        mock_authentication.authenticate.assert_not_called()
