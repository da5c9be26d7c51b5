import json

from conftest import python_command


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_calculate_region(client):
    response = client.post("/api/calculate-region", json={
        "displayRegion": {"x": 10, "y": 10, "width": 100, "height": 50, "displayWidth": 320, "displayHeight": 240},
        "filePath": "/media/a.mp4",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["regionString"] == "20,20 200x100"
    assert body["isValid"] is True


def test_calculate_region_for_other_file_is_rejected(client):
    response = client.post("/api/calculate-region", json={
        "displayRegion": {
            "x": 0, "y": 0, "width": 10, "height": 10,
            "displayWidth": 320, "displayHeight": 240, "filePath": "/media/old.mp4",
        },
        "filePath": "/media/new.mp4",
    })
    assert response.status_code == 400


def test_calculate_region_rejects_zero_display_size(client):
    response = client.post("/api/calculate-region", json={
        "displayRegion": {"x": 0, "y": 0, "width": 10, "height": 10, "displayWidth": 0, "displayHeight": 240},
        "filePath": "/media/a.mp4",
    })
    assert response.status_code == 422


def test_session_input_file(client, tmp_media):
    assert client.get("/api/session/input-file").json()["input_file"] is None

    response = client.post("/api/session/input-file", json={"path": str(tmp_media)})
    assert response.status_code == 200
    assert response.json()["exists"] is True

    current = client.get("/api/session/input-file").json()
    assert current["input_file"] == str(tmp_media.resolve())

    missing = client.post("/api/session/input-file", json={"path": str(tmp_media.parent / "nope.mp4")})
    assert missing.status_code == 404


def test_execute_chains_and_streams(client, tmp_path):
    output = tmp_path / "out.mp4"
    response = client.post("/api/execute-ffmpeg", json={
        "command": python_command(f"open('{output}', 'w').write('abc')"),
        "executionId": 1700000000000,
        "outputFile": str(output),
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["outputSize"] == 3
    assert client.get("/api/session/input-file").json()["input_file"] == str(output)

    # Late subscriber: full replay ending in the terminal event
    stream = client.get("/api/stream-ffmpeg-output/1700000000000")
    events = [json.loads(line[len("data: "):]) for line in stream.text.splitlines() if line.startswith("data: ")]
    assert events[0] == {"type": "connected"}
    assert events[-1]["type"] == "complete"
    assert events[-1]["outputFile"] == str(output)


def test_execute_failure_returns_500_with_output(client):
    response = client.post("/api/execute-ffmpeg", json={
        "command": python_command("import sys; sys.stderr.write('No such file'); sys.exit(1)"),
        "executionId": "fail-1",
    })

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["code"] == 1
    assert body["stderr"] == "No such file"


def test_execute_rejects_blank_command(client):
    response = client.post("/api/execute-ffmpeg", json={"command": "   ", "executionId": "x"})
    assert response.status_code == 422


def test_cancel_unknown_execution_is_404(client):
    response = client.post("/api/cancel-ffmpeg", json={"executionId": "nothing-running"})
    assert response.status_code == 404
    assert response.json()["detail"] == "No active process found for this execution"


def test_settings_roundtrip_updates_tool_path(client, services):
    ffmpeg, _, _ = services

    keys = {setting["key"] for setting in client.get("/api/settings").json()}
    assert {"ffmpeg_path", "ffprobe_path", "auto_execute_commands"} <= keys

    response = client.put("/api/settings/ffmpeg_path", json={"key": "ffmpeg_path", "value": " /opt/bin/ffmpeg "})
    assert response.status_code == 200
    assert response.json()["value"] == "/opt/bin/ffmpeg"
    assert ffmpeg.ffmpeg_path == "/opt/bin/ffmpeg"


def test_settings_validation(client):
    assert client.put(
        "/api/settings/auto_execute_commands",
        json={"key": "auto_execute_commands", "value": "maybe"},
    ).status_code == 422
    assert client.put("/api/settings/unknown", json={"key": "unknown", "value": "x"}).status_code == 400
    assert client.put("/api/settings/ffmpeg_path", json={"key": "ffprobe_path", "value": ""}).status_code == 400
    assert client.get("/api/settings/unknown").status_code == 404


def test_serve_file_with_range(client, tmp_path):
    media = tmp_path / "clip.mp4"
    media.write_bytes(bytes(range(100)))

    full = client.get("/api/serve-file", params={"path": str(media)})
    assert full.status_code == 200
    assert full.headers["content-type"] == "video/mp4"

    partial = client.get("/api/serve-file", params={"path": str(media)}, headers={"Range": "bytes=10-19"})
    assert partial.status_code == 206
    assert partial.content == bytes(range(10, 20))
    assert partial.headers["content-range"] == "bytes 10-19/100"

    unsatisfiable = client.get("/api/serve-file", params={"path": str(media)}, headers={"Range": "bytes=500-"})
    assert unsatisfiable.status_code == 416

    assert client.get("/api/serve-file", params={"path": str(tmp_path / "missing.mp4")}).status_code == 404


def test_chat_unknown_provider_is_400(client, tmp_media):
    client.post("/api/session/input-file", json={"path": str(tmp_media)})
    response = client.post("/api/chat", json={"provider": "nope", "message": "make it gray"})
    assert response.status_code == 400


def test_configured_providers_hides_secrets(client, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-secret")
    body = client.get("/api/configured-providers").json()

    assert "openai" in body["configured"]
    assert "sk-secret" not in json.dumps(body)
