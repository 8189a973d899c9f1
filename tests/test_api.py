"""API endpoint tests using FastAPI TestClient."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from api.server import app
from wardrobe_vton.config import PipelineConfig
from wardrobe_vton.errors import ProfileDetectionError, QuotaExceededError
from wardrobe_vton.models import DetectedProfile
from wardrobe_vton.pipeline import OutfitStudio

from conftest import FakeCritic, FakeImageClient, MINIMAL_PNG, make_image


@pytest.fixture
def png_data_url():
    return make_image("x").to_data_url()


@pytest.fixture
def detector():
    mock = MagicMock()
    mock.detect = AsyncMock(return_value=DetectedProfile(height="180cm", skin_tone="Olive"))
    return mock


@pytest.fixture
def studio(tmp_path, detector):
    config = PipelineConfig(
        output_dir=tmp_path / "runs",
        scan_store_path=tmp_path / "scans.json",
        comfyui_input_dir=tmp_path / "input",
    )
    return OutfitStudio(
        config,
        image_client=FakeImageClient(),
        critic=FakeCritic(),
        profile_detector=detector,
    )


@pytest.fixture
def client(studio):
    with patch("api.server.get_studio", return_value=studio):
        yield TestClient(app)


def run_payload(data_url, tops=("T1", "T2"), bottoms=("B1",), **extra):
    return {
        "body_photos": [data_url],
        "tops": [{"id": t, "images": [data_url]} for t in tops],
        "bottoms": [{"id": b, "images": [data_url]} for b in bottoms],
        **extra,
    }


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client):
        """Root endpoint returns OK status."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, client):
        """Health endpoint returns status info."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["comfyui"] == "connected"
        assert data["generating"] is False


class TestRunEndpoints:
    """Starting a run and observing its results."""

    def test_run_completes_every_combination(self, client, png_data_url):
        response = client.post("/api/runs", json=run_payload(png_data_url))

        assert response.status_code == 202
        assert response.json()["task_ids"] == ["T1-B1", "T2-B1"]

        current = client.get("/api/runs/current").json()
        assert current["in_progress"] is False
        assert current["summary"]["complete"] == 2
        first = current["results"][0]
        assert first["task_id"] == "T1-B1"
        assert first["image_base64"].startswith("data:image/png;base64,")
        assert first["critique"]["rating"] == 8
        assert first["loading"] is False

    def test_quota_failure_isolated(self, client, studio, png_data_url):
        original = studio.image_client.generate
        calls = []

        async def fail_first(**kwargs):
            calls.append(kwargs)
            if len(calls) == 1:
                raise QuotaExceededError("RESOURCE_EXHAUSTED", status_code=429)
            return await original(**kwargs)

        studio.image_client.generate = fail_first

        client.post("/api/runs", json=run_payload(png_data_url))

        results = client.get("/api/runs/current").json()["results"]
        assert results[0]["phase"] == "failed"
        assert results[0]["error_category"] == "quota_exceeded"
        assert results[0]["critique"] is None
        assert results[1]["phase"] == "complete"

    def test_insufficient_input(self, client, png_data_url):
        payload = run_payload(png_data_url)
        payload["tops"] = [{"id": "T1", "images": []}]

        response = client.post("/api/runs", json=payload)

        assert response.status_code == 400
        assert "top" in response.json()["detail"]

    def test_missing_body_photos(self, client, png_data_url):
        payload = run_payload(png_data_url)
        payload["body_photos"] = []

        response = client.post("/api/runs", json=payload)

        assert response.status_code == 400

    def test_invalid_base64(self, client, png_data_url):
        payload = run_payload(png_data_url)
        payload["body_photos"] = ["data:image/png;base64,***"]

        response = client.post("/api/runs", json=payload)

        assert response.status_code == 400

    @pytest.mark.parametrize("item_id", ["../../escaped", "shirts/blue", "a\\b"])
    def test_path_like_item_ids_rejected(self, client, studio, png_data_url, item_id):
        response = client.post("/api/runs", json=run_payload(png_data_url, tops=(item_id,)))

        assert response.status_code == 422
        assert studio.results.run_id is None
        assert studio.image_client.calls == []

    def test_missing_tops_field(self, client, png_data_url):
        """Request without tops fails validation."""
        response = client.post("/api/runs", json={"body_photos": [png_data_url], "bottoms": []})

        assert response.status_code == 422

    def test_run_in_progress(self, client, studio, png_data_url):
        studio.results.mark_started()

        response = client.post("/api/runs", json=run_payload(png_data_url))

        assert response.status_code == 409

    def test_run_from_saved_scan(self, client, studio, png_data_url):
        scan = studio.scan_store.save_scan([make_image("scan-front"), make_image("scan-side")])
        payload = run_payload(png_data_url, scan_id=scan.id)
        payload["body_photos"] = []

        response = client.post("/api/runs", json=payload)

        assert response.status_code == 202
        call = studio.image_client.calls[0]
        assert [img.id for img in call["body"]] == ["scan-front", "scan-side"]
        assert call["volumetric_mode"] is True

    def test_unknown_scan(self, client, png_data_url):
        response = client.post("/api/runs", json=run_payload(png_data_url, scan_id="scan_missing"))

        assert response.status_code == 404


class TestProfileDetection:

    def test_detect_merges_profile(self, client, png_data_url):
        response = client.post("/api/profile/detect", json={
            "body_photo": png_data_url,
            "profile": {"body_type": "Athletic", "occasion": "Wedding"},
        })

        data = response.json()
        assert data["success"] is True
        assert data["profile"]["height"] == "180cm"
        assert data["profile"]["body_type"] == "Athletic"
        assert data["profile"]["occasion"] == "Wedding"

    def test_detect_failure(self, client, detector, png_data_url):
        detector.detect.side_effect = ProfileDetectionError("Could not auto-detect stats.")

        response = client.post("/api/profile/detect", json={"body_photo": png_data_url})

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert "auto-detect" in data["error"]


class TestScanEndpoints:

    def test_save_list_get_delete(self, client, png_data_url):
        saved = client.post("/api/scans", json={"images": [png_data_url, png_data_url]})
        assert saved.status_code == 201
        scan_id = saved.json()["id"]
        assert scan_id.startswith("scan_")

        listing = client.get("/api/scans").json()
        assert [s["id"] for s in listing] == [scan_id]
        assert listing[0]["image_count"] == 2

        detail = client.get(f"/api/scans/{scan_id}").json()
        assert len(detail["images"]) == 2

        assert client.delete(f"/api/scans/{scan_id}").status_code == 200
        assert client.get(f"/api/scans/{scan_id}").status_code == 404
        assert client.delete(f"/api/scans/{scan_id}").status_code == 404

    def test_empty_scan_rejected(self, client):
        assert client.post("/api/scans", json={"images": []}).status_code == 400

    def test_storage_full(self, client, studio, png_data_url):
        studio.scan_store.max_bytes = 10

        response = client.post("/api/scans", json={"images": [png_data_url]})

        assert response.status_code == 507
        assert client.get("/api/scans").json() == []

    def test_storage_and_clear(self, client, png_data_url):
        client.post("/api/scans", json={"images": [png_data_url]})

        info = client.get("/api/scans/storage").json()
        assert info["used"] > len(MINIMAL_PNG)
        assert info["total"] == 5 * 1024 * 1024

        assert client.delete("/api/scans").status_code == 200
        assert client.get("/api/scans").json() == []
