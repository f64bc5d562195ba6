def test_health_returns_200(client):
    r = client.get("/health")
    assert r.status_code == 200
    js = r.json()
    assert js["status"] == "ok"
    assert js["service"] == "MulaPOS"
    assert js["session_open"] is False

    client.post("/pos/session/open")
    assert client.get("/health").json()["session_open"] is True


def test_admin_context(client):
    r = client.get("/admin/context")
    assert r.status_code == 200
    js = r.json()
    assert js["company"] == "MulaERP"
    assert js["currency_symbol"] == "RM"
    assert js["display_poll_seconds"] == 5.0
    assert js["payment_methods"] == ["cash", "card"]
