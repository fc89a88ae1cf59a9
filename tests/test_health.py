from fastapi.testclient import TestClient


def test_health_returns_ok(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert "version" in data


def test_ready_with_supabase(mock_supabase):
    from keygate.main import create_app
    from keygate.storage.key_store import SupabaseKeyStore

    mock_client, mock_query, mock_result = mock_supabase
    mock_result.data = [{"id": "test"}]

    client = TestClient(create_app(store=SupabaseKeyStore(mock_client)))
    resp = client.get("/ready")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ready"
    assert data["supabase"] is True
    mock_client.table.assert_called_with("api_keys")


def test_ready_degraded_when_store_down(client):
    client.store.unavailable = True
    resp = client.get("/ready")
    assert resp.status_code == 200
    assert resp.json() == {"status": "degraded", "supabase": False, "detail": "Key store unavailable, retry later"}
