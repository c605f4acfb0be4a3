"""Unit tests for the event webhook resources.

Usage
-----
Run with pytest::

    pytest tests/unit/test_api_events.py

"""

from __future__ import annotations

import falcon
import falcon.testing
import msgspec
import pytest

from cmdbsync.api.app import AppDependencies, create_app
from cmdbsync.api.signature import SignatureConfig, SignatureVerifier
from cmdbsync.cmdb import CMDBConflictError, CMDBUnavailableError, InMemoryCMDBClient
from cmdbsync.reconcile import InMemoryFailureLog, ReconciliationProcessor
from tests.helpers import event_payload


@pytest.fixture
def verifier() -> SignatureVerifier:
    """Return the verifier shared by client and app."""
    return SignatureVerifier(SignatureConfig(secret="s3cret"))


@pytest.fixture
def client(
    processor: ReconciliationProcessor, verifier: SignatureVerifier
) -> falcon.testing.TestClient:
    """Build a test client with the event endpoints registered."""
    app = create_app(AppDependencies(processor=processor, verifier=verifier))
    return falcon.testing.TestClient(app)


def _post(
    client: falcon.testing.TestClient,
    verifier: SignatureVerifier,
    path: str,
    body: bytes,
) -> falcon.testing.Result:
    return client.simulate_post(
        path,
        body=body,
        headers={
            "Content-Type": "application/json",
            verifier.header: verifier.sign(body),
        },
    )


class TestPostEvent:
    """``POST /events``."""

    def test_returns_stored_ci(
        self,
        client: falcon.testing.TestClient,
        verifier: SignatureVerifier,
        cmdb: InMemoryCMDBClient,
    ) -> None:
        """A valid signed event answers 200 with the stored CI."""
        body = msgspec.json.encode(event_payload())
        result = _post(client, verifier, "/events", body)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert result.json["state"] == "done"
        assert result.json["operation"] == "created"
        assert result.json["ci"]["asset_tag"] == "A-1"
        assert result.json["ci"]["sys_id"] == cmdb.records["A-1"].sys_id

    def test_bad_signature_is_401_without_cmdb_calls(
        self, client: falcon.testing.TestClient, cmdb: InMemoryCMDBClient
    ) -> None:
        """Unsigned bodies never reach the processor."""
        result = client.simulate_post(
            "/events",
            body=msgspec.json.encode(event_payload()),
            headers={"X-Signature-256": "sha256=deadbeef"},
        )

        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert result.json["title"] == "Invalid signature"
        assert cmdb.calls.find == 0

    def test_non_ascii_signature_is_401(
        self, client: falcon.testing.TestClient, cmdb: InMemoryCMDBClient
    ) -> None:
        """Latin-1 header bytes are an invalid signature, not a server error."""
        result = client.simulate_post(
            "/events",
            body=msgspec.json.encode(event_payload()),
            headers={"X-Signature-256": "sha256=\u00e9\u00e9"},
        )

        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert result.json["title"] == "Invalid signature"
        assert cmdb.calls.find == 0

    def test_missing_signature_is_401(
        self, client: falcon.testing.TestClient
    ) -> None:
        """Requests without the signature header are rejected."""
        result = client.simulate_post("/events", body=b"{}")
        assert result.status == falcon.HTTP_401, "expected HTTP 401"
        assert "missing" in result.json["description"]

    def test_invalid_json_is_400(
        self, client: falcon.testing.TestClient, verifier: SignatureVerifier
    ) -> None:
        """Correctly signed garbage is a client error."""
        result = _post(client, verifier, "/events", b"{not json")
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["field"] == "body"

    def test_validation_failure_lists_problems(
        self,
        client: falcon.testing.TestClient,
        verifier: SignatureVerifier,
        failure_log: InMemoryFailureLog,
    ) -> None:
        """Missing fields answer 400 with one problem per field."""
        payload = event_payload()
        del payload["resource_id"]

        result = _post(client, verifier, "/events", msgspec.json.encode(payload))

        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert [p["field"] for p in result.json["problems"]] == ["resource_id"]
        assert len(failure_log) == 1, "validation failures are kept for replay"

    def test_cmdb_outage_is_500_with_detail(
        self,
        client: falcon.testing.TestClient,
        verifier: SignatureVerifier,
        cmdb: InMemoryCMDBClient,
    ) -> None:
        """CMDB failures answer 500 with kind, stage and retryability."""
        cmdb.fail_for("A-1", CMDBUnavailableError.http_error(503))

        body = msgspec.json.encode(event_payload())
        result = _post(client, verifier, "/events", body)

        assert result.status == falcon.HTTP_500, "expected HTTP 500"
        assert result.json == {
            "title": "Event processing failed",
            "state": "failed",
            "kind": "cmdb_unavailable",
            "stage": "transformed",
            "description": "CMDB HTTP 503",
            "retryable": True,
            "asset_tag": "A-1",
        }

    def test_conflict_is_500_not_retryable(
        self,
        client: falcon.testing.TestClient,
        verifier: SignatureVerifier,
        cmdb: InMemoryCMDBClient,
    ) -> None:
        """Conflicts are reported as fatal."""
        cmdb.fail_for("A-1", CMDBConflictError.duplicate_asset_tag("A-1", 2))

        body = msgspec.json.encode(event_payload())
        result = _post(client, verifier, "/events", body)

        assert result.status == falcon.HTTP_500, "expected HTTP 500"
        assert result.json["kind"] == "cmdb_conflict"
        assert result.json["retryable"] is False


class TestPostEventBatch:
    """``POST /events/batch``."""

    def test_reports_each_event_in_order(
        self,
        client: falcon.testing.TestClient,
        verifier: SignatureVerifier,
        cmdb: InMemoryCMDBClient,
    ) -> None:
        """One failing event does not fail the batch."""
        cmdb.fail_for("A-2", CMDBUnavailableError.http_error(503))
        body = msgspec.json.encode(
            [event_payload("A-1"), event_payload("A-2"), event_payload("A-3")]
        )

        result = _post(client, verifier, "/events/batch", body)

        assert result.status == falcon.HTTP_200, "expected HTTP 200"
        assert (result.json["total"], result.json["succeeded"]) == (3, 2)
        assert result.json["failed"] == 1
        assert [r["state"] for r in result.json["results"]] == [
            "done",
            "failed",
            "done",
        ]
        assert result.json["results"][1]["kind"] == "cmdb_unavailable"

    def test_rejects_non_array_body(
        self, client: falcon.testing.TestClient, verifier: SignatureVerifier
    ) -> None:
        """The batch envelope must be a JSON array."""
        body = msgspec.json.encode(event_payload())
        result = _post(client, verifier, "/events/batch", body)
        assert result.status == falcon.HTTP_400, "expected HTTP 400"
        assert result.json["description"] == "expected a JSON array of events"

    def test_requires_signature(self, client: falcon.testing.TestClient) -> None:
        """Batches are signed like single events."""
        result = client.simulate_post("/events/batch", body=b"[]")
        assert result.status == falcon.HTTP_401, "expected HTTP 401"
