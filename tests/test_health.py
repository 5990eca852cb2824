def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200

    payload = response.json()
    assert payload["status"] == "success"
    assert payload["data"] == {"status": "ok", "service": "WebScan API", "database": "connected"}
    assert isinstance(payload["timestamp"], int)


def test_root_info(client):
    response = client.get("/")
    assert response.status_code == 200
    payload = response.json()
    assert payload["app_name"] == "WebScan API"
    assert payload["version"] == "1.0.0"
    assert payload["docs_url"] == "/docs"


def test_unknown_route_uses_failure_envelope(client):
    response = client.get("/does-not-exist")

    assert response.status_code == 404
    payload = response.json()
    assert payload["status"] == "failed"
    assert payload["error"] == "Not Found"
