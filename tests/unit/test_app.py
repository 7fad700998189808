from __future__ import annotations

from io import BytesIO

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tryfy import app as app_module
from tryfy.config import Settings
from tryfy.intake import PreviewStore


def build_app(client, previews=None) -> TestClient:
    app = app_module.create_app(settings=Settings(), client=client, previews=previews)
    return TestClient(app)


def _upload(http: TestClient, slot: str, name: str, data: bytes, media_type: str):
    return http.put(f"/images/{slot}", files={"file": (name, data, media_type)})


def test_initial_state(fake_client):
    http = build_app(fake_client)
    resp = http.get("/state")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "idle"
    assert body["loading"] is False
    assert body["personImage"] is None


def test_upload_then_generate(fake_client, person_bytes, garment_bytes):
    http = build_app(fake_client)

    resp = _upload(http, "person", "person.jpg", person_bytes, "image/jpeg")
    assert resp.status_code == 200
    assert resp.json()["size"] == 500
    assert _upload(http, "garment", "garment.png", garment_bytes, "image/png").status_code == 200

    resp = http.post("/generate")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "succeeded"
    assert body["resultImage"] == "data:image/png;base64,Zm9v"
    assert body["error"] is None
    assert body["personImage"]["filename"] == "person.jpg"
    assert len(fake_client.calls) == 1


def test_generate_with_one_image_reports_failure(fake_client, person_bytes):
    http = build_app(fake_client)
    _upload(http, "person", "person.jpg", person_bytes, "image/jpeg")

    body = http.post("/generate").json()

    assert body["status"] == "failed"
    assert body["error"] == "Please upload both a person and a garment image."
    assert fake_client.calls == []


def test_refusal_is_reported_as_state(refusing_client, person_bytes, garment_bytes):
    http = build_app(refusing_client)
    _upload(http, "person", "person.jpg", person_bytes, "image/jpeg")
    _upload(http, "garment", "garment.png", garment_bytes, "image/png")

    body = http.post("/generate").json()

    assert body["status"] == "failed"
    assert body["error"] == "unsupported content"
    assert body["resultImage"] is None


def test_rejects_unsupported_media_type(fake_client):
    http = build_app(fake_client)
    resp = _upload(http, "person", "person.gif", b"GIF89a", "image/gif")
    assert resp.status_code == 415


def test_unknown_slot_is_rejected(fake_client, person_bytes):
    http = build_app(fake_client)
    resp = _upload(http, "shoes", "person.jpg", person_bytes, "image/jpeg")
    assert resp.status_code == 422


def test_preview_is_served_until_removed(fake_client, person_bytes):
    previews = PreviewStore()
    http = build_app(fake_client, previews)
    preview_url = _upload(http, "person", "person.jpg", person_bytes, "image/jpeg").json()["previewUrl"]

    resp = http.get(preview_url)
    assert resp.status_code == 200
    assert resp.content == person_bytes
    assert resp.headers["content-type"] == "image/jpeg"

    assert http.delete("/images/person").status_code == 204
    assert http.get(preview_url).status_code == 404
    assert len(previews) == 0


def test_replacing_an_image_keeps_one_preview_per_slot(fake_client, person_bytes):
    previews = PreviewStore()
    http = build_app(fake_client, previews)

    first = _upload(http, "person", "a.jpg", person_bytes, "image/jpeg").json()["previewUrl"]
    _upload(http, "person", "b.jpg", person_bytes, "image/jpeg")

    assert len(previews) == 1
    assert http.get(first).status_code == 404


def test_download_result(fake_client, person_bytes, garment_bytes):
    http = build_app(fake_client)
    assert http.get("/result").status_code == 404

    _upload(http, "person", "person.jpg", person_bytes, "image/jpeg")
    _upload(http, "garment", "garment.png", garment_bytes, "image/png")
    http.post("/generate")

    resp = http.get("/result")
    assert resp.status_code == 200
    assert resp.content == b"foo"
    assert resp.headers["content-type"] == "image/png"
    assert 'filename="tryfy-result.png"' in resp.headers["content-disposition"]


def test_generate_while_loading_returns_409(fake_client, monkeypatch):
    http = build_app(fake_client)
    session = http.app.state.session
    monkeypatch.setattr(type(session.state), "is_loading", property(lambda self: True))

    resp = http.post("/generate")

    assert resp.status_code == 409
    assert fake_client.calls == []


class TestFromUrl:
    @pytest.fixture
    def remote(self, monkeypatch, garment_bytes):
        real_async_client = httpx.AsyncClient

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/shirt.png":
                return httpx.Response(200, content=garment_bytes, headers={"content-type": "image/png"})
            if request.url.path == "/page.html":
                return httpx.Response(200, content=b"<html></html>", headers={"content-type": "text/html"})
            return httpx.Response(404)

        def make_client(*args, **kwargs):
            return real_async_client(transport=httpx.MockTransport(handler))

        monkeypatch.setattr(app_module.httpx, "AsyncClient", make_client)

    def test_fetches_and_ingests(self, fake_client, remote, garment_bytes):
        http = build_app(fake_client)

        resp = http.post("/images/garment/from-url", json={"url": "https://shop.example/shirt.png"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["filename"] == "shirt.png"
        assert body["mediaType"] == "image/png"
        assert http.get(body["previewUrl"]).content == garment_bytes

    def test_non_image_link_is_rejected(self, fake_client, remote):
        http = build_app(fake_client)
        resp = http.post("/images/garment/from-url", json={"url": "https://shop.example/page.html"})
        assert resp.status_code == 400

    def test_upstream_status_is_forwarded(self, fake_client, remote):
        http = build_app(fake_client)
        resp = http.post("/images/garment/from-url", json={"url": "https://shop.example/missing.png"})
        assert resp.status_code == 404


def test_rejects_upload_whose_content_is_not_jpeg_or_png(fake_client):
    previews = PreviewStore()
    http = build_app(fake_client, previews)
    buf = BytesIO()
    Image.new("RGB", (4, 4)).save(buf, format="GIF")

    resp = _upload(http, "person", "person.png", buf.getvalue(), "image/png")

    assert resp.status_code == 415
    assert len(previews) == 0
    assert http.get("/state").json()["personImage"] is None
