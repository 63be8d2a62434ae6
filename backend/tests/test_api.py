"""End-to-end API flows: upload, analyze, rate limits, saved scripts."""

from __future__ import annotations

import base64

from conftest import SAMPLE_ANALYSIS, failing_analyzer, register

VIDEO = b"\x00\x00\x00\x18ftypmp42fake-video-bytes"


def analyze_inline(client, headers):
    return client.post(
        "/api/analyze",
        json={"video_base64": base64.b64encode(VIDEO).decode(), "mime_type": "video/mp4"},
        headers=headers,
    )


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_routes_require_auth(client):
    assert client.get("/api/scripts").status_code == 401
    assert client.post("/api/analyze", json={}).status_code == 401
    assert client.get("/api/videos").status_code == 401


def test_upload_list_sign_and_delete_video(client, auth_headers):
    resp = client.post(
        "/api/videos",
        files={"video": ("clip one.mp4", VIDEO, "video/mp4")},
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    video = resp.json()
    assert video["size"] == len(VIDEO)
    assert video["mime_type"] == "video/mp4"
    assert video["path"].endswith("_clip_one.mp4")

    listed = client.get("/api/videos", headers=auth_headers).json()["videos"]
    assert [v["path"] for v in listed] == [video["path"]]

    signed = client.get("/api/videos/signed-url", params={"path": video["path"]}, headers=auth_headers)
    assert signed.status_code == 200
    assert signed.json()["expires_in"] == 3600
    fetched = client.get(signed.json()["signed_url"])
    assert fetched.status_code == 200
    assert fetched.content == VIDEO

    deleted = client.delete("/api/videos", params={"path": video["path"]}, headers=auth_headers)
    assert deleted.json() == {"success": True}
    assert client.get("/api/videos", headers=auth_headers).json()["videos"] == []


def test_upload_rejects_wrong_type_and_size(client, auth_headers):
    wrong = client.post(
        "/api/videos",
        files={"video": ("pic.png", b"png", "image/png")},
        headers=auth_headers,
    )
    assert wrong.status_code == 400
    big = client.post(
        "/api/videos",
        files={"video": ("big.mp4", b"x" * 2048, "video/mp4")},
        headers=auth_headers,
    )
    assert big.status_code == 413


def test_videos_of_other_users_are_off_limits(client, auth_headers):
    path = client.post(
        "/api/videos",
        files={"video": ("a.mp4", VIDEO, "video/mp4")},
        headers=auth_headers,
    ).json()["path"]
    other = register(client, email="other@example.com")
    assert client.delete("/api/videos", params={"path": path}, headers=other).status_code == 403
    assert client.post("/api/analyze", json={"video_path": path}, headers=other).status_code == 403


def test_signed_url_rejects_garbage_token(client):
    assert client.get("/api/videos/signed/not-a-token").status_code == 403


def test_analyze_inline_video(client, auth_headers, analyzer):
    resp = analyze_inline(client, auth_headers)
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["is_demo_mode"] is False
    assert body["result"]["title"] == "Morning routine"
    assert body["rate_limit"]["remaining_requests"] == 4
    assert analyzer.calls == [(len(VIDEO), "video/mp4")]


def test_analyze_stored_video(client, auth_headers, analyzer):
    path = client.post(
        "/api/videos",
        files={"video": ("a.webm", VIDEO, "video/webm")},
        headers=auth_headers,
    ).json()["path"]
    resp = client.post("/api/analyze", json={"video_path": path}, headers=auth_headers)
    assert resp.status_code == 200
    assert analyzer.calls == [(len(VIDEO), "video/webm")]


def test_analyze_validates_input(client, auth_headers):
    assert client.post("/api/analyze", json={}, headers=auth_headers).status_code == 400
    bad_type = client.post(
        "/api/analyze",
        json={"video_base64": base64.b64encode(VIDEO).decode(), "mime_type": "image/gif"},
        headers=auth_headers,
    )
    assert bad_type.status_code == 400
    bad_b64 = client.post(
        "/api/analyze",
        json={"video_base64": "***", "mime_type": "video/mp4"},
        headers=auth_headers,
    )
    assert bad_b64.status_code == 400


def test_analyze_falls_back_to_demo(client, auth_headers, services):
    services.analyzer = failing_analyzer()
    body = analyze_inline(client, auth_headers).json()
    assert body["is_demo_mode"] is True
    assert body["result"]["is_demo_mode"] is True
    assert body["error"]


def test_analyze_without_fallback_returns_502(client, auth_headers, services):
    services.analyzer = failing_analyzer()
    services.settings.demo_fallback = False
    assert analyze_inline(client, auth_headers).status_code == 502


def test_analysis_rate_limit(client, auth_headers, analyzer):
    for _ in range(5):
        assert analyze_inline(client, auth_headers).status_code == 200
    throttled = analyze_inline(client, auth_headers)
    assert throttled.status_code == 429
    assert int(throttled.headers["Retry-After"]) > 0
    assert "5 per 15 min" in throttled.json()["detail"]
    assert len(analyzer.calls) == 5

    status = client.get("/api/rate-limit", headers=auth_headers).json()
    assert status["analysis"]["current_requests"] == 5
    assert status["analysis"]["remaining_requests"] == 0
    assert status["save"]["remaining_requests"] == 10

    other = register(client, email="other@example.com")
    assert analyze_inline(client, other).status_code == 200


def test_save_list_search_and_delete_scripts(client, auth_headers):
    saved = client.post("/api/scripts", json=SAMPLE_ANALYSIS, headers=auth_headers)
    assert saved.status_code == 200, saved.text
    script = saved.json()
    assert script["title"] == "Morning routine"
    client.post("/api/scripts", json={"title": "Cooking"}, headers=auth_headers)

    listed = client.get("/api/scripts", headers=auth_headers).json()
    assert listed["total"] == 2
    assert [s["title"] for s in listed["scripts"]] == ["Cooking", "Morning routine"]

    found = client.get("/api/scripts", params={"q": "lo-fi"}, headers=auth_headers).json()
    assert found["total"] == 2
    assert [s["id"] for s in found["scripts"]] == [script["id"]]

    one = client.get(f"/api/scripts/{script['id']}", headers=auth_headers)
    assert one.json()["id"] == script["id"]

    text = client.get(f"/api/scripts/{script['id']}/text", headers=auth_headers).json()["text"]
    assert text.startswith("Morning routine\n\nSCRIPT:")
    scenes = client.get(
        f"/api/scripts/{script['id']}/text", params={"layout": "scenes"}, headers=auth_headers
    ).json()["text"]
    assert scenes.startswith('[0-3 s] close up\n"Do you wake up tired?"\n(hook)\n')

    assert client.delete(f"/api/scripts/{script['id']}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/scripts/{script['id']}", headers=auth_headers).status_code == 404
    assert client.delete(f"/api/scripts/{script['id']}", headers=auth_headers).status_code == 404

    assert client.delete("/api/scripts", headers=auth_headers).json() == {"success": True, "deleted": 1}


def test_scripts_are_private(client, auth_headers):
    script_id = client.post("/api/scripts", json={"title": "mine"}, headers=auth_headers).json()["id"]
    other = register(client, email="other@example.com")
    assert client.get(f"/api/scripts/{script_id}", headers=other).status_code == 404
    assert client.get("/api/scripts", headers=other).json()["total"] == 0


def test_save_rate_limit(client, auth_headers):
    for i in range(10):
        assert client.post("/api/scripts", json={"title": str(i)}, headers=auth_headers).status_code == 200
    resp = client.post("/api/scripts", json={"title": "eleven"}, headers=auth_headers)
    assert resp.status_code == 429
    assert "Retry-After" in resp.headers


def test_script_quota(client, auth_headers, services):
    services.scripts.max_per_user = 1
    assert client.post("/api/scripts", json={"title": "a"}, headers=auth_headers).status_code == 200
    assert client.post("/api/scripts", json={"title": "b"}, headers=auth_headers).status_code == 409


def test_save_rejects_non_object(client, auth_headers):
    assert client.post("/api/scripts", json=["x"], headers=auth_headers).status_code == 422


def test_full_account_does_not_use_save_slots(client, auth_headers, services):
    services.scripts.max_per_user = 1
    assert client.post("/api/scripts", json={"title": "a"}, headers=auth_headers).status_code == 200
    for _ in range(3):
        resp = client.post("/api/scripts", json={"title": "b"}, headers=auth_headers)
        assert resp.status_code == 409
        assert "limit reached (1)" in resp.json()["detail"]
    save = client.get("/api/rate-limit", headers=auth_headers).json()["save"]
    assert save["current_requests"] == 1
    assert save["remaining_requests"] == 9
