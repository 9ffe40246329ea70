"""
Tests for the migration orchestrator.
"""

from unittest.mock import Mock

import pytest
import requests
from conftest import FakeResponse, FakeSession

from email_builder_migrator import (
    AllEndpointsFailedError,
    CancellationToken,
    CanonicalDocument,
    CreateFailedError,
    CredentialNotFoundError,
    InvalidResourceKindError,
    MigrationCancelledError,
    MigrationError,
    MigrationState,
    Migrator,
    MigratorSettings,
    ResourceDescriptor,
    ResourceKind,
    TransportError,
    WriteFailedError,
    start_migration,
)
from email_builder_migrator.production import candidate_urls

STAGING = "http://staging.services.leadconnectorhq.internal"


@pytest.mark.unit
class TestMigrator:
    def setup_method(self) -> None:
        self.descriptor = ResourceDescriptor("prod-loc", "tpl1", ResourceKind.CAMPAIGN)
        self.document = CanonicalDocument(design_data={"a": 1}, html_content="<p/>")

        self.reader = Mock()
        self.reader.fetch_resource.return_value = {"dnd": {"a": 1}, "html": "<p/>"}
        self.normalizer = Mock()
        self.normalizer.normalize.return_value = self.document
        self.writer = Mock()
        self.writer.create_entity.return_value = "new1"
        self.writer.write_data.return_value = {}
        self.statuses: list[str] = []

    def _migrator(self) -> Migrator:
        return Migrator(self.reader, self.normalizer, self.writer, status_sink=self.statuses.append)

    def test_success_sequence(self) -> None:
        migrator = self._migrator()

        result = migrator.migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert result.success
        assert result.new_entity_id == "new1"
        assert result.state is MigrationState.DONE
        assert migrator.state is MigrationState.DONE
        self.reader.fetch_resource.assert_called_once_with(self.descriptor, "tok")
        self.normalizer.normalize.assert_called_once_with({"dnd": {"a": 1}, "html": "<p/>"})
        self.writer.create_entity.assert_called_once_with("stg-loc")
        self.writer.write_data.assert_called_once_with("stg-loc", "new1", self.document, ResourceKind.TEMPLATE)

    def test_campaign_source_still_written_as_template(self) -> None:
        self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok")
        assert self.writer.write_data.call_args.args[3] is ResourceKind.TEMPLATE

    def test_progress_emitted_before_each_step(self) -> None:
        result = self._migrator().migrate(self.descriptor, "stg-loc", storage={"token-id": "stored-token"})

        assert self.statuses == [
            "Extracting authentication token...",
            "Fetching data from production...",
            "Normalizing production data...",
            "Creating new template in staging...",
            "Updating staging template with production data...",
            "Migration completed",
        ]
        assert result.progress == self.statuses

    def test_override_skips_token_extraction_message(self) -> None:
        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert result.success
        assert self.statuses[0] == "Fetching data from production..."
        assert "Extracting authentication token..." not in self.statuses

    def test_credential_from_storage(self) -> None:
        storage = {"token-id": "stored-token"}

        result = self._migrator().migrate(self.descriptor, "stg-loc", storage=storage)

        assert result.success
        self.reader.fetch_resource.assert_called_once_with(self.descriptor, "stored-token")

    def test_credential_not_found(self) -> None:
        migrator = self._migrator()

        result = migrator.migrate(self.descriptor, "stg-loc", storage={"a": "b"})

        assert not result.success
        assert isinstance(result.error, CredentialNotFoundError)
        assert result.state is MigrationState.ERROR
        assert self.statuses[-1] == "Authentication token is required for API calls"
        self.reader.fetch_resource.assert_not_called()
        self.writer.create_entity.assert_not_called()

    @pytest.mark.parametrize(
        ("target", "error", "expected_calls"),
        [
            ("reader.fetch_resource", AllEndpointsFailedError("all failed"), 0),
            ("writer.create_entity", CreateFailedError("create failed"), 1),
            ("writer.write_data", WriteFailedError("write failed"), 1),
        ],
    )
    def test_component_failure_maps_to_result(self, target: str, error: MigrationError, expected_calls: int) -> None:
        owner, method = target.split(".")
        getattr(getattr(self, owner), method).side_effect = error

        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert not result.success
        assert result.error is error
        assert result.reason == str(error)
        assert self.statuses[-1] == str(error)
        assert self.writer.create_entity.call_count == expected_calls

    def test_write_failure_leaves_created_entity(self) -> None:
        self.writer.write_data.side_effect = WriteFailedError("Failed to update entity data: 500")

        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert not result.success
        assert result.new_entity_id is None
        # No compensating delete is attempted
        assert [c[0] for c in self.writer.method_calls] == ["create_entity", "write_data"]

    def test_unexpected_request_exception_becomes_transport_error(self) -> None:
        self.reader.fetch_resource.side_effect = requests.ConnectionError("reset")

        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert isinstance(result.error, TransportError)
        assert "fetching" in result.reason

    def test_cancelled_before_start(self) -> None:
        token = CancellationToken()
        token.cancel()

        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok", cancel_token=token)

        assert isinstance(result.error, MigrationCancelledError)
        self.reader.fetch_resource.assert_not_called()

    def test_cancelled_after_create_reports_leftover(self) -> None:
        token = CancellationToken()

        def create_and_cancel(location_id: str) -> str:
            token.cancel()
            return "new1"

        self.writer.create_entity.side_effect = create_and_cancel

        result = self._migrator().migrate(self.descriptor, "stg-loc", credential_override="tok", cancel_token=token)

        assert isinstance(result.error, MigrationCancelledError)
        assert "new1" in result.reason
        self.writer.write_data.assert_not_called()

    def test_reusable_across_runs(self) -> None:
        migrator = self._migrator()
        self.writer.create_entity.side_effect = [CreateFailedError("x"), "new2"]

        first = migrator.migrate(self.descriptor, "stg-loc", credential_override="tok")
        second = migrator.migrate(self.descriptor, "stg-loc", credential_override="tok")

        assert not first.success
        assert second.success
        assert second.new_entity_id == "new2"
        assert len(second.progress) == 5


@pytest.mark.unit
class TestStartMigrationValidation:
    def test_invalid_kind(self, fake_session: FakeSession) -> None:
        statuses: list[str] = []

        result = start_migration(
            "loc", "ent", "stg", "newsletter", "tok", session=fake_session, status_sink=statuses.append
        )

        assert isinstance(result.error, InvalidResourceKindError)
        assert statuses == [result.reason]
        assert fake_session.calls == []

    def test_empty_destination(self, fake_session: FakeSession) -> None:
        result = start_migration("loc", "ent", "  ", "template", "tok", session=fake_session)

        assert not result.success
        assert "Destination location id" in result.reason
        assert fake_session.calls == []

    def test_empty_source_entity(self, fake_session: FakeSession) -> None:
        result = start_migration("loc", "", "stg", "template", "tok", session=fake_session)

        assert not result.success
        assert "Source entity id" in result.reason

    def test_caller_session_is_not_closed(self, fake_session: FakeSession) -> None:
        start_migration("loc", "ent", "stg", "template", None, session=fake_session)
        assert not fake_session.closed


@pytest.mark.integration
class TestEndToEnd:
    def setup_method(self) -> None:
        self.settings = MigratorSettings()
        self.descriptor = ResourceDescriptor("prod-loc", "tpl1", ResourceKind.TEMPLATE)
        self.urls = candidate_urls(self.descriptor, self.settings)

    def test_editor_data_with_preview(self, fake_session: FakeSession) -> None:
        design = {"elements": [{"type": "text"}], "attrs": {}, "templateSettings": {}}
        fake_session.route(
            "GET", self.urls[0], FakeResponse(200, {"editorData": design, "previewUrl": "https://x/preview"})
        )
        fake_session.route("GET", "https://x/preview", FakeResponse(200, text="<html>OK</html>"))
        fake_session.route("POST", f"{STAGING}/emails/builder", FakeResponse(201, {"id": "stg-tpl-1"}))
        fake_session.route("POST", f"{STAGING}/emails/builder/data", FakeResponse(200, {"success": True}))

        result = start_migration("prod-loc", "tpl1", "stg-loc", "template", "tok", session=fake_session)

        assert result.success
        assert result.new_entity_id == "stg-tpl-1"
        create, write = fake_session.calls_to("POST")
        assert create.body["type"] == "blank"
        assert write.body["templateId"] == "stg-tpl-1"
        assert write.body["dnd"] == design
        assert write.body["html"] == "<html>OK</html>"

    def test_campaign_becomes_template(self, fake_session: FakeSession) -> None:
        campaign = ResourceDescriptor("prod-loc", "cmp1", ResourceKind.CAMPAIGN)
        fake_session.route(
            "GET", candidate_urls(campaign, self.settings)[2], FakeResponse(200, {"dnd": {"a": 1}, "html": "<p/>"})
        )
        fake_session.route("POST", f"{STAGING}/emails/builder", FakeResponse(200, {"redirect": "stg-tpl-2"}))
        fake_session.route("POST", f"{STAGING}/emails/builder/data", FakeResponse(200, {}))

        result = start_migration("prod-loc", "cmp1", "stg-loc", ResourceKind.CAMPAIGN, "tok", session=fake_session)

        assert result.success
        assert result.new_entity_id == "stg-tpl-2"
        write = fake_session.calls_to("POST")[1]
        assert write.url == f"{STAGING}/emails/builder/data"
        assert write.body["templateId"] == "stg-tpl-2"
        assert write.body["dnd"] == {"a": 1}


@pytest.mark.unit
class TestEndToEndFailures:
    """Failure scenarios run through the real pipeline; they log errors by design."""

    def test_all_endpoints_fail(self, fake_session: FakeSession) -> None:
        result = start_migration("prod-loc", "tpl1", "stg-loc", "template", "tok", session=fake_session)

        assert isinstance(result.error, AllEndpointsFailedError)
        assert len(fake_session.calls_to("GET")) == 7
        assert fake_session.calls_to("POST") == []

    def test_no_credential_makes_no_network_call(self, fake_session: FakeSession) -> None:
        statuses: list[str] = []

        result = start_migration(
            "prod-loc",
            "tpl1",
            "stg-loc",
            "template",
            None,
            storage={},
            session=fake_session,
            status_sink=statuses.append,
        )

        assert isinstance(result.error, CredentialNotFoundError)
        assert statuses == ["Extracting authentication token...", "Authentication token is required for API calls"]
        assert fake_session.calls == []
