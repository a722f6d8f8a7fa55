"""
Tests for the HTTP API (FastAPI TestClient, SQLite database per test).
"""

import pytest
from fastapi.testclient import TestClient

from api.website_analysis import app, get_service
from siteintel.database import (
    complete_analysis,
    create_competitor_analysis,
    update_site_quality,
)
from siteintel.models import TargetKind
from siteintel.services import WebsiteAnalysisService


MERCHANT = {"X-Merchant-ID": "7"}
OTHER_MERCHANT = {"X-Merchant-ID": "8"}


@pytest.fixture
def client(db, recording_registry):
    service = WebsiteAnalysisService(registry=recording_registry)
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert "environment" in data

    def test_database_status(self, client):
        response = client.get("/api/database")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["database_type"] == "sqlite"
        assert data["connected"] is True
        assert data["error"] is None


class TestWebsiteAnalysisEndpoints:

    def test_start_and_read(self, client, recording_registry):
        response = client.post("/api/website-analysis", json={"url": "https://desertdates.example.sa"}, headers=MERCHANT)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "analyzing"
        assert recording_registry.started == [("website", body["analysis_id"])]

        detail = client.get(f"/api/website-analysis/{body['analysis_id']}", headers=MERCHANT).json()
        assert detail["url"].startswith("https://desertdates.example.sa")
        assert detail["extracted_products"] == []
        assert detail["insights"] == []

        listing = client.get("/api/website-analysis", headers=MERCHANT).json()
        assert [a["id"] for a in listing] == [body["analysis_id"]]

    def test_invalid_url_rejected(self, client):
        response = client.post("/api/website-analysis", json={"url": "not a url"}, headers=MERCHANT)
        assert response.status_code == 422

    def test_merchant_header_required(self, client):
        response = client.get("/api/website-analysis")
        assert response.status_code == 422

    def test_other_merchant_gets_403(self, client):
        analysis_id = client.post(
            "/api/website-analysis", json={"url": "https://desertdates.example.sa"}, headers=MERCHANT
        ).json()["analysis_id"]

        for path in ("", "/products", "/insights"):
            response = client.get(f"/api/website-analysis/{analysis_id}{path}", headers=OTHER_MERCHANT)
            assert response.status_code == 403

        assert client.delete(f"/api/website-analysis/{analysis_id}", headers=OTHER_MERCHANT).status_code == 403
        assert client.get("/api/website-analysis", headers=OTHER_MERCHANT).json() == []

    def test_missing_analysis_gets_403(self, client):
        assert client.get("/api/website-analysis/9999", headers=MERCHANT).status_code == 403

    def test_delete(self, client):
        analysis_id = client.post(
            "/api/website-analysis", json={"url": "https://desertdates.example.sa"}, headers=MERCHANT
        ).json()["analysis_id"]

        response = client.delete(f"/api/website-analysis/{analysis_id}", headers=MERCHANT)

        assert response.status_code == 200
        assert client.get(f"/api/website-analysis/{analysis_id}", headers=MERCHANT).status_code == 403


class TestCompetitorEndpoints:

    def test_add_and_list(self, client, recording_registry):
        response = client.post(
            "/api/competitors", json={"name": "Rival", "url": "https://rival.example.sa"}, headers=MERCHANT
        )

        assert response.status_code == 200
        competitor_id = response.json()["competitor_id"]
        assert recording_registry.started == [("competitor", competitor_id)]

        detail = client.get(f"/api/competitors/{competitor_id}", headers=MERCHANT).json()
        assert detail["name"] == "Rival"
        assert detail["products"] == []
        assert client.get(f"/api/competitors/{competitor_id}/products", headers=MERCHANT).json() == []
        assert len(client.get("/api/competitors", headers=MERCHANT).json()) == 1

    def test_name_required(self, client):
        response = client.post("/api/competitors", json={"name": "", "url": "https://rival.example.sa"}, headers=MERCHANT)
        assert response.status_code == 422

    def test_other_merchant_gets_403(self, client):
        competitor_id = create_competitor_analysis(7, "Rival", "https://rival.example.sa")

        assert client.get(f"/api/competitors/{competitor_id}", headers=OTHER_MERCHANT).status_code == 403
        assert client.get(f"/api/competitors/{competitor_id}/products", headers=OTHER_MERCHANT).status_code == 403
        assert client.delete(f"/api/competitors/{competitor_id}", headers=OTHER_MERCHANT).status_code == 403
        assert client.delete(f"/api/competitors/{competitor_id}", headers=MERCHANT).status_code == 200


class TestCompareEndpoint:

    def test_compare(self, client, good_report, weak_report):
        analysis_id = client.post(
            "/api/website-analysis", json={"url": weak_report.url}, headers=MERCHANT
        ).json()["analysis_id"]
        update_site_quality(TargetKind.WEBSITE, analysis_id, weak_report.quality_fields())
        complete_analysis(TargetKind.WEBSITE, analysis_id)

        competitor_id = create_competitor_analysis(7, "Rival", good_report.url)
        update_site_quality(TargetKind.COMPETITOR, competitor_id, good_report.quality_fields())
        complete_analysis(TargetKind.COMPETITOR, competitor_id)

        response = client.post(
            f"/api/website-analysis/{analysis_id}/compare",
            json={"competitor_ids": [competitor_id]},
            headers=MERCHANT,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["competitors_compared"] == 1
        assert data["weaknesses"]
        assert any("Rival" in o for o in data["opportunities"])

    def test_empty_list_vs_omitted(self, client, good_report, weak_report):
        analysis_id = client.post(
            "/api/website-analysis", json={"url": weak_report.url}, headers=MERCHANT
        ).json()["analysis_id"]
        update_site_quality(TargetKind.WEBSITE, analysis_id, weak_report.quality_fields())
        complete_analysis(TargetKind.WEBSITE, analysis_id)
        competitor_id = create_competitor_analysis(7, "Rival", good_report.url)
        update_site_quality(TargetKind.COMPETITOR, competitor_id, good_report.quality_fields())
        complete_analysis(TargetKind.COMPETITOR, competitor_id)
        path = f"/api/website-analysis/{analysis_id}/compare"

        empty = client.post(path, json={"competitor_ids": []}, headers=MERCHANT).json()
        omitted = client.post(path, json={}, headers=MERCHANT).json()

        assert empty["competitors_compared"] == 0
        assert empty["weaknesses"] == []
        assert omitted["competitors_compared"] == 1
        assert omitted["competitor_ids"] == [competitor_id]

    def test_compare_foreign_analysis(self, client):
        analysis_id = client.post(
            "/api/website-analysis", json={"url": "https://a.example.sa"}, headers=MERCHANT
        ).json()["analysis_id"]

        response = client.post(f"/api/website-analysis/{analysis_id}/compare", json={}, headers=OTHER_MERCHANT)

        assert response.status_code == 403
