import pytest

from nozzle_monitor.webapp import create_app


@pytest.fixture
def client(controller, settings):
    app = create_app(controller, settings)
    app.config["TESTING"] = True
    return app.test_client()


def test_status_returns_all_nozzles(client):
    response = client.get("/api/status")
    assert response.status_code == 200
    body = response.get_json()
    assert len(body) == 48
    assert body[0] == {"id": "01", "status": "L", "fueling": None}


def test_command_success(client, scheduler):
    response = client.post("/api/command", json={"nozzleId": "05", "command": "AUTHORIZE"})
    assert response.status_code == 200
    assert response.get_json() == {
        "success": True,
        "nozzle": {"id": "05", "status": "P", "fueling": None},
    }

    scheduler.advance(2.5)
    body = client.get("/api/status").get_json()
    assert body[4]["fueling"] == {"volume": 0.5, "total": 2.95, "price": 5.89}


def test_command_unknown_nozzle_returns_404(client, controller):
    before = controller.snapshot()
    response = client.post("/api/command", json={"nozzleId": "99", "command": "AUTHORIZE"})
    assert response.status_code == 404
    assert response.get_json() == {"error": "Nozzle not found"}
    assert controller.snapshot() == before


def test_command_without_body_returns_404(client):
    response = client.post("/api/command", data="not json", content_type="text/plain")
    assert response.status_code == 404


def test_unknown_command_acknowledged(client):
    response = client.post("/api/command", json={"nozzleId": "05", "command": "DANCE"})
    assert response.status_code == 200
    assert response.get_json()["nozzle"]["status"] == "E"


def test_strict_unknown_command_returns_400(settings, scheduler, publisher):
    from nozzle_monitor.controllers import DispenserController

    settings["engine"]["strict_commands"] = True
    ctrl = DispenserController(settings, scheduler=scheduler, publisher=publisher)
    client = create_app(ctrl, settings).test_client()

    response = client.post("/api/command", json={"nozzleId": "05", "command": "DANCE"})
    assert response.status_code == 400
    assert "DANCE" in response.get_json()["error"]


def test_internal_failure_returns_500(client, controller, monkeypatch):
    def explode(nozzle_id, command):
        raise RuntimeError("boom")

    monkeypatch.setattr(controller, "apply", explode)
    response = client.post("/api/command", json={"nozzleId": "05", "command": "BLOCK"})
    assert response.status_code == 500
    assert response.get_json() == {"error": "Internal server error"}


def test_single_nozzle_endpoint(client):
    assert client.get("/api/nozzles/12").get_json()["status"] == "E"
    assert client.get("/api/nozzles/77").status_code == 404


def test_summary_endpoint(client):
    body = client.get("/api/summary").get_json()
    assert body["protocol"] == "Horustech"
    assert body["counts"]["E"] == 2
    assert sum(body["counts"].values()) == 48


def test_dashboard_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"/api/status" in response.data


def test_unknown_route_is_plain_404(client):
    assert client.get("/api/nope").status_code == 404


def test_requests_are_logged(controller, settings, capsys):
    settings["web"]["log_requests"] = True
    client = create_app(controller, settings).test_client()
    client.get("/api/status")
    assert "GET /api/status" in capsys.readouterr().out


def test_request_log_includes_query_string(controller, settings, capsys):
    settings["web"]["log_requests"] = True
    client = create_app(controller, settings).test_client()
    client.get("/api/status?since=05")
    client.get("/api/summary?")
    out = capsys.readouterr().out
    assert "GET /api/status?since=05" in out
    assert "GET /api/summary\n" in out
