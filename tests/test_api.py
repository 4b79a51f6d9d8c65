import pytest

pytest.importorskip("httpx")

from fastapi.testclient import TestClient

from cpp_executor.api.app import create_app


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings.model_copy(update={"max_code_length": 200, "max_input_length": 20})))


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.text == "OK"


def test_execute_success(client):
    resp = client.post("/execute", json={"code": "#!/bin/sh\nprintf hi\n"})
    assert resp.status_code == 200
    assert resp.json() == {"output": "hi", "success": True}


def test_execute_with_input(client):
    resp = client.post("/execute", json={"code": "#!/bin/sh\ncat\n", "input": "abc"})
    assert resp.json() == {"output": "abc", "success": True}


def test_null_input_means_no_input(client):
    resp = client.post("/execute", json={"code": "#!/bin/sh\ncat\n", "input": None})
    assert resp.json() == {"output": "", "success": True}


def test_failed_job_is_still_200(client):
    resp = client.post("/execute", json={"code": "#!/bin/sh\nexit 9\n"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["output"].startswith("Error: Process exited with code 9")


def test_missing_code_is_400(client):
    resp = client.post("/execute", json={"input": "1"})
    assert resp.status_code == 400


def test_invalid_json_is_400(client):
    resp = client.post("/execute", content=b"{not json", headers={"content-type": "application/json"})
    assert resp.status_code == 400


def test_oversized_code_and_input_are_400(client):
    assert client.post("/execute", json={"code": "x" * 201}).status_code == 400
    assert client.post("/execute", json={"code": "#!/bin/sh\n", "input": "y" * 21}).status_code == 400
