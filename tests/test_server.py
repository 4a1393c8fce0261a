"""Tests for the audit server endpoints."""

import csv
import io

from fastapi.testclient import TestClient

# Client fixture is inherited from conftest.py

PRIVATE_KEY = "S" + "C" * 55


def flush(client):
    response = client.post("/v1/logs/flush")
    assert response.status_code == 200
    return response.json()


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_returns_ok(self, client):
        """Test that health endpoint returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data

    def test_tracing_headers(self, client):
        response = client.get("/health", headers={"X-Correlation-ID": "corr-1"})
        assert response.headers["X-Correlation-ID"] == "corr-1"
        assert response.headers["X-Request-ID"]


class TestGenericLogs:
    """Tests for POST /v1/logs."""

    def test_create_log_accepted(self, client):
        response = client.post(
            "/v1/logs",
            json={
                "level": "WARN",
                "message": "Low treasury balance",
                "context": {"balance": 12.5},
                "action_type": "monitoring",
                "employer": "E1",
            },
        )
        assert response.status_code == 202
        data = response.json()
        assert data["queued"] is True
        assert data["entry"]["log_level"] == "WARN"
        assert data["entry"]["action_type"] == "monitoring"
        assert data["entry"]["context"]["balance"] == 12.5
        assert data["entry"]["timestamp"].endswith("Z")

    def test_response_is_unredacted_but_stored_copy_is(self, client):
        response = client.post(
            "/v1/logs",
            json={"message": f"key {PRIVATE_KEY}", "context": {"password": "hunter2"}},
        )
        assert response.json()["entry"]["context"]["password"] == "hunter2"

        assert flush(client)["written"] == 1
        (entry,) = client.get("/v1/logs").json()["entries"]
        assert entry["message"] == "key [REDACTED]"
        assert entry["context"]["password"] == "[REDACTED]"

    def test_correlation_id_added_to_context(self, client):
        response = client.post(
            "/v1/logs",
            json={"message": "hello"},
            headers={"X-Correlation-ID": "corr-42"},
        )
        assert response.json()["entry"]["context"]["correlation_id"] == "corr-42"

    def test_invalid_level_rejected(self, client):
        response = client.post("/v1/logs", json={"level": "LOUD", "message": "x"})
        assert response.status_code == 422

    def test_block_number_beyond_integer_column_rejected(self, client):
        response = client.post("/v1/logs", json={"message": "x", "block_number": 2**64})
        assert response.status_code == 422

    def test_oversized_block_number_does_not_block_later_entries(self, client):
        client.post("/v1/logs", json={"message": "x", "block_number": 2**64})
        client.post("/v1/logs", json={"message": "kept", "block_number": 2**63 - 1})

        assert flush(client)["written"] == 1
        (entry,) = client.get("/v1/logs").json()["entries"]
        assert entry["block_number"] == 2**63 - 1


class TestDomainEvents:
    """Tests for the domain event endpoints."""

    def test_stream_creation_round_trip(self, client):
        response = client.post(
            "/v1/events/stream-creation",
            json={
                "employer": "E1",
                "worker": "GWORKER",
                "token": "USDC",
                "amount": "1000",
                "duration": 2592000,
                "success": True,
                "stream_id": 5,
                "transaction_hash": "0xabc",
                "block_number": 12,
            },
        )
        assert response.status_code == 202
        assert response.json() == {"accepted": True, "pending": 1}

        flush(client)
        (entry,) = client.get("/v1/logs", params={"employer": "E1"}).json()["entries"]
        assert entry["action_type"] == "stream_creation"
        assert entry["log_level"] == "INFO"
        assert entry["message"] == "Payroll stream created successfully"
        assert entry["block_number"] == 12

    def test_contract_interaction_failure(self, client):
        response = client.post(
            "/v1/events/contract-interaction",
            json={
                "contract_address": "CCONTRACT",
                "function_name": "create_stream",
                "success": False,
                "duration_ms": 321,
                "employer": "E1",
                "error": {"message": "simulation failed", "code": "SIM"},
            },
        )
        assert response.status_code == 202

        flush(client)
        (entry,) = client.get("/v1/logs", params={"log_level": "ERROR"}).json()["entries"]
        assert entry["message"] == "Contract interaction failed"
        assert entry["error_message"] == "simulation failed"
        assert entry["error_code"] == "SIM"

    def test_scheduler_event(self, client):
        response = client.post(
            "/v1/events/scheduler",
            json={"schedule_id": 3, "action": "task_completed", "task_name": "payroll"},
        )
        assert response.status_code == 202

        flush(client)
        (entry,) = client.get("/v1/logs", params={"action_type": "scheduling"}).json()["entries"]
        assert entry["message"] == "Scheduled task task completed"

    def test_monitor_event(self, client):
        response = client.post(
            "/v1/events/monitor",
            json={
                "employer": "E1",
                "balance": 50,
                "liabilities": 500,
                "daily_burn_rate": 25,
                "runway_days": 2,
                "alert_sent": True,
            },
        )
        assert response.status_code == 202

        flush(client)
        (entry,) = client.get("/v1/logs", params={"action_type": "monitoring"}).json()["entries"]
        assert entry["log_level"] == "WARN"
        assert entry["context"]["check_type"] == "routine"

    def test_negative_duration_rejected(self, client):
        response = client.post(
            "/v1/events/contract-interaction",
            json={
                "contract_address": "C",
                "function_name": "f",
                "success": True,
                "duration_ms": -1,
            },
        )
        assert response.status_code == 422

    def test_stream_id_beyond_integer_column_rejected(self, client):
        response = client.post(
            "/v1/events/stream-creation",
            json={
                "employer": "E1",
                "worker": "GWORKER",
                "token": "USDC",
                "amount": "1000",
                "duration": 60,
                "success": True,
                "stream_id": 2**64,
            },
        )
        assert response.status_code == 422


class TestQueryEndpoints:
    """Tests for listing, statistics and exports."""

    def seed(self, client):
        for i, employer in enumerate(["E1", "E1", "E2"]):
            client.post(
                "/v1/logs",
                json={
                    "message": f"msg, \"{i}\"",
                    "employer": employer,
                    "action_type": "stream_creation",
                    "timestamp": f"2024-03-01T0{i}:00:00Z",
                },
            )
        assert flush(client) == {"written": 3, "pending": 0}

    def test_list_pagination(self, client):
        self.seed(client)
        data = client.get("/v1/logs", params={"limit": 1, "offset": 1}).json()
        assert data["count"] == 1
        assert data["entries"][0]["message"] == 'msg, "1"'

    def test_list_date_filter(self, client):
        self.seed(client)
        data = client.get(
            "/v1/logs",
            params={"start_date": "2024-03-01T01:00:00Z", "end_date": "2024-03-01T02:00:00Z"},
        ).json()
        assert [e["message"] for e in data["entries"]] == ['msg, "2"', 'msg, "1"']

    def test_limit_bounds(self, client):
        assert client.get("/v1/logs", params={"limit": 0}).status_code == 422

    def test_stats(self, client):
        self.seed(client)
        data = client.get("/v1/logs/stats", params={"employer": "E1"}).json()
        assert data == {
            "total": 2,
            "by_level": {"INFO": 2},
            "by_action_type": {"stream_creation": 2},
        }

    def test_export_json(self, client):
        self.seed(client)
        response = client.get("/v1/employers/E1/logs/export")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/json")
        assert [e["employer"] for e in response.json()] == ["E1", "E1"]

    def test_export_csv(self, client):
        self.seed(client)
        response = client.get("/v1/employers/E2/logs/export", params={"format": "csv"})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="audit-E2.csv"' in response.headers["content-disposition"]
        rows = list(csv.reader(io.StringIO(response.text)))
        assert rows[0][0] == "timestamp"
        assert rows[1][2] == 'msg, "2"'

    def test_export_non_latin1_employer(self, client):
        response = client.get("/v1/employers/émployeur✓/logs/export", params={"format": "csv"})
        assert response.status_code == 200
        disposition = response.headers["content-disposition"]
        assert 'filename="audit-_mployeur_.csv"' in disposition
        assert "filename*=UTF-8''audit-%C3%A9mployeur%E2%9C%93.csv" in disposition

    def test_export_bad_format(self, client):
        response = client.get("/v1/employers/E1/logs/export", params={"format": "xml"})
        assert response.status_code == 422


class TestLifecycle:
    def test_shutdown_flushes_pending_entries(self, app):
        with TestClient(app) as client:
            client.post("/v1/logs", json={"message": "before shutdown", "employer": "E9"})
            audit = app.state.audit_logger
            assert len(audit.queue) == 1

        assert len(audit.queue) == 0

    def test_unhandled_error_is_audited(self, app):
        async def boom():
            raise RuntimeError("handler exploded")

        app.add_api_route("/boom", boom, methods=["GET"])

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/boom")
            assert response.status_code == 500

            flush(client)
            (entry,) = client.get("/v1/logs", params={"log_level": "ERROR"}).json()["entries"]

        assert entry["message"] == "Request error"
        assert entry["action_type"] == "system"
        assert entry["error_message"] == "handler exploded"
        assert entry["context"]["path"] == "/boom"
        assert entry["context"]["method"] == "GET"
