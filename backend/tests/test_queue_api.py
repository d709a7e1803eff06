"""API endpoint tests for the virtual queue."""

from datetime import timedelta

from fastapi.testclient import TestClient

from virtual_queue.core.security import create_access_token

QUEUE_URL = "/api/queue"


def join(client: TestClient, tenant_id: str = "T1", **customer) -> dict:
    response = client.post(QUEUE_URL, json={"userId": tenant_id, **customer})
    assert response.status_code == 200
    return response.json()


class TestHealthCheck:
    """Test health check endpoint."""

    def test_health_check(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestJoinQueue:
    """POST /queue is public."""

    def test_join(self, client: TestClient):
        data = join(client, customerName="Ana", customerPhone="+359888")
        assert data["success"] is True
        assert data["queueNumber"] == 1
        assert data["position"] == 1
        assert data["estimatedWaitMinutes"] == 3

        entry = data["entry"]
        assert entry["userId"] == "T1"
        assert entry["queueNumber"] == 1
        assert entry["customerName"] == "Ana"
        assert entry["customerPhone"] == "+359888"
        assert entry["customerEmail"] is None
        assert entry["status"] == "waiting"
        assert entry["position"] == 1
        assert entry["estimatedWaitMinutes"] == 3
        assert entry["calledAt"] is None
        assert entry["actualWaitMinutes"] is None
        assert entry["createdAt"]

    def test_successive_joins(self, client: TestClient):
        numbers = [join(client)["queueNumber"] for _ in range(3)]
        assert numbers == [1, 2, 3]

    def test_missing_user_id(self, client: TestClient):
        response = client.post(QUEUE_URL, json={"customerName": "Ana"})
        assert response.status_code == 400
        assert "userId" in response.json()["detail"]

    def test_blank_user_id(self, client: TestClient):
        response = client.post(QUEUE_URL, json={"userId": "  "})
        assert response.status_code == 400

    def test_malformed_body(self, client: TestClient):
        response = client.post(
            QUEUE_URL,
            content="not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_tenant_id_field_accepted(self, client: TestClient):
        data = join(client, tenantId="branch-7")
        assert data["entry"]["userId"] == "T1"


class TestListQueue:
    """GET /queue requires the tenant's token."""

    def test_requires_auth(self, client: TestClient):
        response = client.get(QUEUE_URL)
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client: TestClient):
        response = client.get(QUEUE_URL, headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_expired_token(self, client: TestClient):
        token = create_access_token({"sub": "T1"}, expires_delta=timedelta(minutes=-5))
        response = client.get(QUEUE_URL, headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_lists_waiting_with_stats(self, client: TestClient, auth_headers):
        join(client, customerName="Ana")
        join(client, customerName="Beto")
        join(client, "T2", customerName="Other")

        response = client.get(QUEUE_URL, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert [e["customerName"] for e in data["entries"]] == ["Ana", "Beto"]
        assert data["stats"] == {"waiting": 2, "averageWaitMinutes": 3, "totalServedToday": 0}

    def test_status_all_includes_called(self, client: TestClient, auth_headers):
        join(client, customerName="Ana")
        join(client, customerName="Beto")
        client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)

        waiting = client.get(QUEUE_URL, headers=auth_headers).json()["entries"]
        assert [e["customerName"] for e in waiting] == ["Beto"]

        everyone = client.get(QUEUE_URL, params={"status": "all"}, headers=auth_headers).json()["entries"]
        assert {e["customerName"]: e["status"] for e in everyone} == {"Ana": "called", "Beto": "waiting"}

        called = client.get(QUEUE_URL, params={"status": "called"}, headers=auth_headers).json()["entries"]
        assert [e["customerName"] for e in called] == ["Ana"]

    def test_cookie_auth(self, client: TestClient):
        join(client, customerName="Ana")
        token = create_access_token({"sub": "T1"})
        client.cookies.set("access_token", token)
        try:
            response = client.get(QUEUE_URL)
        finally:
            client.cookies.clear()
        assert response.status_code == 200
        assert len(response.json()["entries"]) == 1

    def test_tenant_claim_wins_over_subject(self, client: TestClient):
        join(client, "shop-9", customerName="Ana")
        token = create_access_token({"sub": "42", "tenant_id": "shop-9"})
        response = client.get(QUEUE_URL, headers={"Authorization": f"Bearer {token}"})
        assert [e["customerName"] for e in response.json()["entries"]] == ["Ana"]


class TestQueueActions:
    """PATCH /queue drives the queue from a counter terminal."""

    def test_requires_auth(self, client: TestClient):
        response = client.patch(QUEUE_URL, json={"action": "next"})
        assert response.status_code == 401

    def test_next_on_empty_queue(self, client: TestClient, auth_headers):
        response = client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)
        assert response.status_code == 404

    def test_next(self, client: TestClient, auth_headers, clock):
        ana = join(client, customerName="Ana")["entry"]
        join(client, customerName="Beto")
        clock.advance(minutes=6)

        response = client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["remainingInQueue"] == 1
        assert data["called"]["id"] == ana["id"]
        assert data["called"]["status"] == "called"
        assert data["called"]["actualWaitMinutes"] == 6
        assert data["called"]["calledAt"]

    def test_complete(self, client: TestClient, auth_headers, clock):
        ana = join(client, customerName="Ana")["entry"]
        clock.advance(minutes=5)
        client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)

        response = client.patch(
            QUEUE_URL, json={"action": "complete", "entryId": ana["id"]}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["entry"]["status"] == "served"

        stats = client.get(QUEUE_URL, headers=auth_headers).json()["stats"]
        assert stats["averageWaitMinutes"] == 5
        assert stats["totalServedToday"] == 1

    def test_complete_waiting_entry_conflicts(self, client: TestClient, auth_headers):
        ana = join(client, customerName="Ana")["entry"]
        response = client.patch(
            QUEUE_URL, json={"action": "complete", "entryId": ana["id"]}, headers=auth_headers
        )
        assert response.status_code == 409

    def test_cancel(self, client: TestClient, auth_headers):
        join(client, customerName="Ana")
        beto = join(client, customerName="Beto")["entry"]
        join(client, customerName="Caro")

        response = client.patch(
            QUEUE_URL, json={"action": "cancel", "entryId": beto["id"]}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["entry"]["status"] == "cancelled"

        entries = client.get(QUEUE_URL, headers=auth_headers).json()["entries"]
        assert [(e["customerName"], e["position"]) for e in entries] == [("Ana", 1), ("Caro", 2)]

    def test_cancel_twice_conflicts(self, client: TestClient, auth_headers):
        ana = join(client, customerName="Ana")["entry"]
        body = {"action": "cancel", "entryId": ana["id"]}
        assert client.patch(QUEUE_URL, json=body, headers=auth_headers).status_code == 200
        assert client.patch(QUEUE_URL, json=body, headers=auth_headers).status_code == 409

    def test_unknown_entry(self, client: TestClient, auth_headers):
        for action in ("complete", "cancel"):
            response = client.patch(
                QUEUE_URL, json={"action": action, "entryId": "missing"}, headers=auth_headers
            )
            assert response.status_code == 404

    def test_entry_id_required(self, client: TestClient, auth_headers):
        for action in ("complete", "cancel"):
            response = client.patch(QUEUE_URL, json={"action": action}, headers=auth_headers)
            assert response.status_code == 400

    def test_unknown_action(self, client: TestClient, auth_headers):
        response = client.patch(QUEUE_URL, json={"action": "skip"}, headers=auth_headers)
        assert response.status_code == 400
        response = client.patch(QUEUE_URL, json={}, headers=auth_headers)
        assert response.status_code == 400

    def test_other_tenant_cannot_touch_entry(self, client: TestClient, headers_for):
        ana = join(client, customerName="Ana")["entry"]
        response = client.patch(
            QUEUE_URL, json={"action": "cancel", "entryId": ana["id"]}, headers=headers_for("T2")
        )
        assert response.status_code == 404
        response = client.patch(QUEUE_URL, json={"action": "next"}, headers=headers_for("T2"))
        assert response.status_code == 404


class TestStatusLookup:
    """GET /queue/status lets customers check their place without a login."""

    def test_by_entry_id(self, client: TestClient):
        join(client, customerName="Ana")
        beto = join(client, customerName="Beto")["entry"]

        response = client.get(f"{QUEUE_URL}/status", params={"entryId": beto["id"]})
        assert response.status_code == 200
        data = response.json()
        assert data["found"] is True
        assert data["entry"]["id"] == beto["id"]
        assert data["entry"]["queueNumber"] == 2
        assert data["entry"]["position"] == 2
        assert data["entry"]["status"] == "waiting"
        assert data["entry"]["estimatedWaitMinutes"] == 6
        assert data["entry"]["calledAt"] is None

    def test_by_phone(self, client: TestClient):
        join(client, customerName="Ana", customerPhone="+359888")
        response = client.get(f"{QUEUE_URL}/status", params={"phone": "+359888", "userId": "T1"})
        assert response.json()["found"] is True
        assert response.json()["entry"]["queueNumber"] == 1

    def test_not_found(self, client: TestClient):
        response = client.get(f"{QUEUE_URL}/status", params={"entryId": "missing"})
        assert response.status_code == 200
        assert response.json()["found"] is False
        assert response.json()["message"]

    def test_requires_id_or_phone(self, client: TestClient):
        response = client.get(f"{QUEUE_URL}/status")
        assert response.status_code == 400

    def test_phone_without_user_id_not_found(self, client: TestClient):
        join(client, customerPhone="+359888")
        response = client.get(f"{QUEUE_URL}/status", params={"phone": "+359888"})
        assert response.status_code == 200
        assert response.json()["found"] is False


class TestMetrics:

    def test_queue_operations_exported(self, client: TestClient, auth_headers):
        join(client)
        client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)
        client.patch(QUEUE_URL, json={"action": "next"}, headers=auth_headers)

        response = client.get("/metrics")
        assert response.status_code == 200
        body = response.text
        assert 'queue_operations_total{operation="enqueue",outcome="ok"} 1' in body
        assert 'queue_operations_total{operation="call_next",outcome="ok"} 1' in body
        assert 'queue_operations_total{operation="call_next",outcome="empty"} 1' in body
        assert 'http_requests_total{method="POST",path="/api/queue"} 1' in body
