"""
Tests for the analysis and session endpoints.

This module contains tests for stateless analysis (JSON and file upload),
chart and CSV export endpoints, and the session workflow.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.utils.export import read_exported_csv


SAMPLE_CSV = b"""2020,1,1,10,2
2020,1,2,20,-1
2020,2,1,15,5
2020,12,31,,4
"""


@pytest.fixture
def client():
    """Test client fixture."""
    return TestClient(app)


@pytest.fixture
def records_payload():
    return [
        {"year": 2020, "month": 1, "day": 1, "TX": 10, "TN": 2},
        {"year": 2020, "month": 1, "day": 2, "TX": 20, "TN": -1},
        {"year": 2020, "month": 2, "day": 1, "TX": 15, "TN": 5},
    ]


def upload(content=SAMPLE_CSV, name="data.csv"):
    return {"file": (name, content, "text/csv")}


@pytest.fixture
def session_id(client):
    """Create a session from the sample file and return its id."""
    response = client.post("/api/v1/sessions", files=upload())
    assert response.status_code == 201
    return response.json()["session_id"]


class TestAnalyzeJSON:
    """Test POST /analysis with JSON bodies."""

    def test_monthly_average(self, client, records_payload):
        """Test monthly TX averages over JSON records."""
        response = client.post(
            "/api/v1/analysis",
            json={
                "records": records_payload,
                "filter": {"year_start": 2020, "year_end": 2020, "month": "all", "season": "all"},
                "period": "monthly",
                "metric": {"field": "TX", "kind": "average"},
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["record_count"] == 3
        assert data["filtered_count"] == 3
        assert data["bucket_count"] == 2
        assert data["buckets"] == [
            {"year": 2020, "month": 1, "value": 15.0},
            {"year": 2020, "month": 2, "value": 15.0},
        ]

    def test_annual_count_above(self, client, records_payload):
        """Test the annual count above a threshold."""
        response = client.post(
            "/api/v1/analysis",
            json={
                "records": records_payload,
                "period": "annual",
                "metric": {"field": "TX", "kind": "countAbove", "threshold": 12},
            },
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == [{"year": 2020, "value": 2.0}]

    def test_seasonal_buckets_keep_season(self, client, records_payload):
        """Test that seasonal buckets carry their season name."""
        response = client.post(
            "/api/v1/analysis",
            json={"records": records_payload, "period": "seasonal"},
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == [{"year": 2020, "season": "winter", "value": 15.0}]

    def test_missing_value_is_null(self, client):
        """Test that a NaN bucket value is returned as null."""
        response = client.post(
            "/api/v1/analysis",
            json={"records": [{"year": 2020, "month": 1, "day": 1, "TX": None, "TN": 1}]},
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == [{"year": 2020, "value": None}]

    def test_conflicting_filters_give_no_buckets(self, client, records_payload):
        """Test that a month outside the season returns no buckets."""
        response = client.post(
            "/api/v1/analysis",
            json={"records": records_payload, "filter": {"month": 6, "season": "winter"}},
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == []

    @pytest.mark.parametrize("body", [
        {"period": "weekly"},
        {"metric": {"kind": "median"}},
        {"metric": {"field": "TAVG"}},
        {"filter": {"month": 13}},
        {"filter": {"season": "monsoon"}},
        {"filter": {"year_start": 2021, "year_end": 2020}},
        {"records": [{"year": 2020, "month": 14, "day": 1, "TX": 1, "TN": 1}]},
    ])
    def test_invalid_configuration_rejected(self, client, body):
        """Test that invalid configurations are rejected with 422."""
        response = client.post("/api/v1/analysis", json=body)
        assert response.status_code == 422


class TestChartAndExport:
    """Test chart and CSV export endpoints."""

    def test_chart(self, client, records_payload):
        """Test the chart series endpoint."""
        response = client.post(
            "/api/v1/analysis/chart",
            json={"records": records_payload, "period": "monthly"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "monthly"
        assert [p["label"] for p in data["points"]] == ["2020-01", "2020-02"]
        assert data["y_label"] == "Mean TX (°C)"

    def test_export(self, client, records_payload):
        """Test the CSV export endpoint."""
        response = client.post(
            "/api/v1/analysis/export",
            json={"records": records_payload, "period": "monthly"},
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="chart_data.csv"' in response.headers["content-disposition"]
        assert response.text.splitlines() == ["year,month,value", "2020,1,15.0", "2020,2,15.0"]


class TestUpload:
    """Test file upload endpoints."""

    def test_parse_records(self, client):
        """Test parsing an uploaded file without analysing it."""
        response = client.post("/api/v1/analysis/records", files=upload())
        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "data.csv"
        assert data["record_count"] == 4
        assert data["records"][0] == {"year": 2020, "month": 1, "day": 1, "TX": 10.0, "TN": 2.0}
        assert data["records"][3]["TX"] is None

    def test_upload_and_analyze(self, client):
        """Test parsing and analysing an upload in one request."""
        response = client.post(
            "/api/v1/analysis/upload",
            params={"period": "monthly", "field": "TN", "kind": "countBelow", "threshold": 3},
            files=upload(),
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == [
            {"year": 2020, "month": 1, "value": 2.0},
            {"year": 2020, "month": 2, "value": 0.0},
            {"year": 2020, "month": 12, "value": 0.0},
        ]

    def test_upload_with_month_and_header(self, client):
        """Test an upload with a header line and a month filter."""
        content = b"year,month,day,TX,TN\n" + SAMPLE_CSV
        response = client.post(
            "/api/v1/analysis/upload",
            params={"month": "2", "has_header": True},
            files=upload(content),
        )
        assert response.status_code == 200
        assert response.json()["buckets"] == [{"year": 2020, "value": 15.0}]

    def test_malformed_file(self, client):
        """Test that a malformed upload returns 400."""
        response = client.post(
            "/api/v1/analysis/upload",
            files=upload(b"2020,1,1,10,2\n2020,1,2,hot,2\n"),
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("File parse failed")
        assert "line 2" in response.json()["detail"]

    @pytest.mark.parametrize("params", [
        {"month": "13"},
        {"month": "june"},
        {"season": "monsoon"},
        {"year_start": 2021, "year_end": 2020},
    ])
    def test_invalid_query_parameters(self, client, params):
        """Test that invalid query parameters return 400."""
        response = client.post("/api/v1/analysis/upload", params=params, files=upload())
        assert response.status_code == 400
        assert "Invalid analysis parameters" in response.json()["detail"]

    def test_invalid_enum_query_parameter(self, client):
        """Test that an unknown period token returns 422."""
        response = client.post("/api/v1/analysis/upload", params={"period": "weekly"}, files=upload())
        assert response.status_code == 422

    def test_missing_file(self, client):
        """Test that an upload without a file returns 422."""
        response = client.post("/api/v1/analysis/upload")
        assert response.status_code == 422


class TestSessions:
    """Test the session workflow."""

    def test_create_session(self, client):
        """Test creating a session from an upload."""
        response = client.post(
            "/api/v1/sessions",
            params={"year_start": 2020, "year_end": 2020, "period": "seasonal"},
            files=upload(),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["revision"] == 1
        assert data["record_count"] == 4
        assert data["config"]["period"] == "seasonal"
        # Dec 31 has no TX so the 2020 winter average is a gap
        assert data["buckets"] == [{"year": 2020, "season": "winter", "value": None}]

    def test_read_session(self, client, session_id):
        """Test reading a session."""
        response = client.get(f"/api/v1/sessions/{session_id}")
        assert response.status_code == 200
        assert response.json()["session_id"] == session_id

    def test_update_recomputes(self, client, session_id):
        """Test that patching a session recomputes its buckets."""
        response = client.patch(
            f"/api/v1/sessions/{session_id}",
            json={"period": "monthly", "metric": {"field": "TN", "kind": "average"}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["revision"] == 2
        assert data["buckets"] == [
            {"year": 2020, "month": 1, "value": 0.5},
            {"year": 2020, "month": 2, "value": 5.0},
            {"year": 2020, "month": 12, "value": 4.0},
        ]

        response = client.patch(
            f"/api/v1/sessions/{session_id}",
            json={"filter": {"season": "winter", "month": 12}},
        )
        data = response.json()
        assert data["revision"] == 3
        assert data["config"]["period"] == "monthly"
        assert data["buckets"] == [{"year": 2020, "month": 12, "value": 4.0}]

    def test_invalid_update(self, client, session_id):
        """Test that an invalid patch is rejected."""
        response = client.patch(f"/api/v1/sessions/{session_id}", json={"period": "daily"})
        assert response.status_code == 422

    def test_replace_records(self, client, session_id):
        """Test replacing the records of a session."""
        response = client.put(
            f"/api/v1/sessions/{session_id}/records",
            files=upload(b"2022,6,1,25,15\n"),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["record_count"] == 1
        assert data["buckets"] == [{"year": 2022, "value": 25.0}]

    def test_session_chart(self, client, session_id):
        """Test the chart series of a session."""
        client.patch(f"/api/v1/sessions/{session_id}", json={"period": "monthly"})
        response = client.get(f"/api/v1/sessions/{session_id}/chart")
        assert response.status_code == 200
        points = response.json()["points"]
        assert [p["label"] for p in points] == ["2020-01", "2020-02", "2020-12"]
        assert points[2]["value"] is None

    def test_session_export_round_trip(self, client, session_id):
        """Test that a session export reads back as its buckets."""
        client.patch(f"/api/v1/sessions/{session_id}", json={"period": "monthly"})
        response = client.get(f"/api/v1/sessions/{session_id}/export")
        assert response.status_code == 200

        rows = read_exported_csv(response.text)
        assert [r["month"] for r in rows] == [1, 2, 12]
        assert rows[0]["value"] == pytest.approx(15.0)
        assert rows[2]["value"] != rows[2]["value"]  # NaN

    def test_delete_session(self, client, session_id):
        """Test deleting a session."""
        response = client.delete(f"/api/v1/sessions/{session_id}")
        assert response.status_code == 204

        response = client.get(f"/api/v1/sessions/{session_id}")
        assert response.status_code == 404

    def test_unknown_session(self, client):
        """Test that unknown session ids return 404."""
        assert client.get("/api/v1/sessions/does-not-exist").status_code == 404
        assert client.patch("/api/v1/sessions/does-not-exist", json={}).status_code == 404
        assert client.delete("/api/v1/sessions/does-not-exist").status_code == 404
