import database


def test_root(client):
    assert client.get("/").json()["message"] == "سرور فروشگاه شال و روسری راه‌اندازی شد"


def test_health_reports_connected_database(client):
    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"
    assert resp.json()["database"] == "connected"


def test_health_reports_unreachable_database(client, monkeypatch):
    monkeypatch.setattr(database, "ping", lambda: False)

    resp = client.get("/health")

    assert resp.status_code == 503
    assert resp.json()["database"] == "disconnected"


def test_unknown_route(client):
    resp = client.get("/no-such-route")

    assert resp.status_code == 404
    assert resp.json() == {"message": "مسیر یافت نشد"}


def test_unknown_upload(client):
    resp = client.get("/uploads/nothing.jpg")

    assert resp.status_code == 404
    assert resp.json() == {"message": "مسیر یافت نشد"}
