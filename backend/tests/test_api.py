from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from cpa_monitor.api.deps import get_supabase
from cpa_monitor.main import app
from cpa_monitor.models.metrics import DailyMetric, Platform

END = date(2025, 2, 10)

CSV_EXPORT = (
    "\ufeffAd set name,Amount spent (AUD),Results,Cost per results,Reporting starts,Reporting ends,Ad set delivery\n"
    "AdSetA,$500,10,50.00,2025-01-01,2025-01-01,active\n"
    "AdSetA,$600,12,50.00,2025-01-02,2025-01-02,active\n"
    "AdSetB,0,0,,2025-01-02,2025-01-02,inactive\n"
).encode("utf-8")

REAL_EXPORT = (
    "Ad set name,Amount spent (AUD),Results,Cost per results,Reporting starts,Reporting ends,Ad set delivery\n"
    "AdSetA,$512.40,10,51.24,2025-01-01,2025-01-01,active\n"
    "AdSetA,$618.90,12,51.58,2025-01-02,2025-01-02,active\n"
).encode("utf-8")


class FakeWarehouse:
    def __init__(self, history=None):
        self.history = history or []
        self.reads = []
        self.upserted = []

    async def get_ad_performance(self, date_from, date_to, platform=None):
        self.reads.append((date_from, date_to, platform))
        return [r for r in self.history if date_from <= r.date <= date_to]

    async def upsert_ad_performance(self, rows):
        self.upserted.extend(rows)
        return len(rows)


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def record(day: date, spend: float, conversions: float, ad_set_id: str = "ga_1", platform: str = "google") -> dict:
    return {
        "date": day.isoformat(),
        "platform": platform,
        "ad_set_id": ad_set_id,
        "ad_set_name": ad_set_id.upper(),
        "spend": spend,
        "conversions": conversions,
    }


def week(ad_set_id: str, last_spend: float) -> list[dict]:
    days = [record(END - timedelta(days=i), 100.0 + i * 3.7, 10.0, ad_set_id) for i in range(1, 7)]
    return days + [record(END, last_spend, 10.0, ad_set_id)]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root(client):
    assert client.get("/").json()["health"] == "/health"


class TestUpload:
    def test_facebook_csv(self, client):
        response = client.post(
            "/api/v1/uploads/facebook-csv",
            files={"file": ("export.csv", REAL_EXPORT, "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["filename"] == "export.csv"
        assert body["result"]["success"] is True
        assert body["result"]["summary"]["valid_rows"] == 2
        assert body["result"]["summary"]["dialect"] == "v2"
        assert [p["daily_cpa"] for p in body["chart"]] == pytest.approx([51.24, 51.575])
        assert body["integrity_error"] is None
        assert body["rows_upserted"] == 0

    def test_synthetic_export_is_normalized_but_not_charted(self, client):
        response = client.post(
            "/api/v1/uploads/facebook-csv",
            files={"file": ("export.csv", CSV_EXPORT, "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["result"]["summary"]["total_spend"] == 1100
        assert body["result"]["summary"]["valid_rows"] == 2
        assert body["chart"] == []
        assert body["integrity_error"]["code"] == "DATA_INTEGRITY"
        assert body["integrity_error"]["details"]["heuristic"] == "round_spend"

    def test_synthetic_export_is_not_persisted(self, client, monkeypatch):
        warehouse = FakeWarehouse()
        monkeypatch.setattr("cpa_monitor.api.v1.uploads.get_supabase_service", lambda: warehouse)

        response = client.post(
            "/api/v1/uploads/facebook-csv",
            params={"persist": "true"},
            files={"file": ("export.csv", CSV_EXPORT, "text/csv")},
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "DATA_INTEGRITY"
        assert warehouse.upserted == []

    def test_persist_measures_against_stored_week(self, client, monkeypatch):
        upload_day = date(2025, 1, 7)
        stored = [
            DailyMetric(
                date=upload_day - timedelta(days=i),
                platform=Platform.FACEBOOK,
                ad_set_id="fb_adseta_000",
                ad_set_name="AdSetA",
                spend=100.0,
                conversions=4.0,
            )
            for i in range(1, 7)
        ]
        warehouse = FakeWarehouse(stored)
        monkeypatch.setattr("cpa_monitor.api.v1.uploads.get_supabase_service", lambda: warehouse)
        content = (
            "Ad set name,Amount spent (AUD),Results,Reporting starts\n"
            "AdSetA,$187.50,5,2025-01-07\n"
        ).encode("utf-8")

        response = client.post(
            "/api/v1/uploads/facebook-csv",
            params={"persist": "true"},
            files={"file": ("daily.csv", content, "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["rows_upserted"] == 1
        assert warehouse.reads == [(date(2025, 1, 1), date(2025, 1, 6), Platform.FACEBOOK)]
        [row] = warehouse.upserted
        rolling = 787.5 / 29
        assert row["ad_set_id"] == "fb_adseta_000"
        assert row["cpa_change_percent"] == pytest.approx((37.5 - rolling) / rolling * 100)

    def test_bad_headers(self, client):
        content = b"Name,Cost\nfoo,1\n"

        response = client.post(
            "/api/v1/uploads/facebook-csv",
            files={"file": ("export.csv", content, "text/csv")},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_CSV_HEADERS"


class TestCPA:
    def test_rolling_sorted_with_badges(self, client):
        payload = {"records": week("ga_low", 80.0) + week("ga_high", 190.0), "target_date": END.isoformat()}

        response = client.post("/api/v1/cpa/rolling", json=payload)

        assert response.status_code == 200
        rows = response.json()
        assert [r["result"]["ad_set_id"] for r in rows] == ["ga_high", "ga_low"]
        assert rows[0]["badge"]["color"] == "red"
        assert rows[1]["result"]["trend"] == "improving"

    def test_rolling_empty_history_is_422(self, client):
        response = client.post("/api/v1/cpa/rolling", json={"records": []})

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "EMPTY_INPUT"

    def test_malformed_record_is_422(self, client):
        payload = {"records": [{"date": "2025-02-10", "platform": "google", "ad_set_id": "x", "spend": -4, "conversions": 1}]}

        response = client.post("/api/v1/cpa/chart", json=payload)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MALFORMED_RECORD"
        assert response.json()["error"]["details"]["index"] == 0

    def test_integrity_strict_rejects(self, client):
        payload = {"records": [record(END, 100.0 * (i + 2), 5.0 * (i + 2), f"ga_{i}") for i in range(10)]}

        response = client.post("/api/v1/cpa/integrity", json=payload)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "DATA_INTEGRITY"

    def test_integrity_report_mode(self, client):
        payload = {"records": [record(END, 100.0 * (i + 2), 5.0 * (i + 2), f"ga_{i}") for i in range(10)]}

        response = client.post("/api/v1/cpa/integrity?strict=false", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert body["passed"] is False
        assert body["record_count"] == 10
        assert "Mock data detected: Identical cost per conversion across all records" in body["validation"]["errors"]

    def test_alerts(self, client):
        payload = {"records": week("ga_spike", 190.0) + week("ga_calm", 104.0), "target_date": END.isoformat()}

        response = client.post("/api/v1/cpa/alerts", json=payload)

        assert response.status_code == 200
        body = response.json()
        assert [r["ad_set_id"] for r in body["buckets"]["critical"]] == ["ga_spike"]
        assert body["buckets"]["warning"] == []
        assert [a["id"] for a in body["alerts"]] == ["critical:google:ga_spike"]

    def test_alerts_with_custom_thresholds(self, client):
        payload = {
            "records": week("ga_spike", 190.0),
            "target_date": END.isoformat(),
            "thresholds": {"critical": 100, "warning": 50, "improvement": -10},
        }

        body = client.post("/api/v1/cpa/alerts", json=payload).json()

        assert [r["ad_set_id"] for r in body["buckets"]["warning"]] == ["ga_spike"]
        assert body["alerts"][0]["type"] == "warning"

    def test_chart(self, client):
        payload = {"records": [record(END - timedelta(days=1), 450.0, 9.0), record(END, 660.0, 12.0)]}

        body = client.post("/api/v1/cpa/chart", json=payload).json()

        assert [p["daily_cpa"] for p in body["series"]] == [50, 55]
        assert [p["rolling_7day_avg"] for p in body["series"]] == pytest.approx([50, 1110 / 21])
        assert body["headline"]["daily_change_percent"] == pytest.approx(10)

    @pytest.mark.parametrize("path", ["rolling", "alerts", "chart", "daily-summary"])
    def test_placeholder_batch_is_never_aggregated(self, client, path):
        payload = {"records": week("test_adset", 104.0), "target_date": END.isoformat()}

        response = client.post(f"/api/v1/cpa/{path}", json=payload)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "DATA_INTEGRITY"
        assert response.json()["error"]["details"]["heuristic"] == "placeholder_name"

    def test_daily_summary(self, client):
        payload = {
            "records": [record(END, 90.0, 3.0), record(END, 40.0, 2.0, "fb_a_000", "facebook")],
            "target_date": END.isoformat(),
        }

        body = client.post("/api/v1/cpa/daily-summary", json=payload).json()

        assert body["total_spend"] == 130
        assert body["average_cpa"] == 26
        assert body["platform_breakdown"]["facebook"]["cpa"] == 20

    def test_stored_rolling_reads_warehouse(self, client):
        class FakeWarehouse:
            async def get_ad_performance(self, date_from, date_to, platform=None):
                assert (date_from, date_to) == (END - timedelta(days=6), END)
                return [
                    DailyMetric(date=END, platform=Platform.GOOGLE, ad_set_id="ga_9", spend=90.0, conversions=3.0),
                ]

        app.dependency_overrides[get_supabase] = lambda: FakeWarehouse()

        response = client.get("/api/v1/cpa/rolling", params={"target_date": END.isoformat()})

        assert response.status_code == 200
        assert response.json()[0]["result"]["current_day_cpa"] == 30
