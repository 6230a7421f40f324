def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True


def test_healthz_plain(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_unknown_api_route_uses_error_envelope(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    assert r.json["success"] is False
    assert r.json["errors"][0]["message"]


def test_uploads_rejects_traversal_and_missing(client):
    assert client.get("/uploads/../secret.txt").status_code == 404
    assert client.get("/uploads/events/1/missing.png").status_code == 404


def test_protected_route_requires_login(client):
    r = client.get("/api/users/me")
    assert r.status_code == 401
    assert r.json["message"] == "Please login to access this resource"


def test_garbage_token_is_unauthorized(client):
    r = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401
