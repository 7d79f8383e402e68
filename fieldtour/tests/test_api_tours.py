"""
Tests for the tours HTTP API.
Routing is replaced by FakeRoutingService; persistence is in-memory sqlite.
"""
import pytest
from fastapi.testclient import TestClient

from fieldtour.main import create_app
from fieldtour.models import TripOutcome

pytestmark = pytest.mark.integration

START = {"lat": 33.5700, "lon": -7.6000}


@pytest.fixture
def client(session_factory, routing):
    app = create_app(session_factory=session_factory, osrm_service=routing)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def site_ids(client):
    """Three sites due north of START: far (point), near (point), middle (footprint)."""
    far = client.post("/api/sites", json={"address": "Far", "points": [{"lat": 33.59, "lon": -7.60}]})
    near = client.post("/api/sites", json={"address": "Near", "points": [{"lat": 33.572, "lon": -7.60}]})
    middle = client.post("/api/sites", json={
        "address": "Middle",
        "site_type": "Commercial",
        "points": [
            {"lat": 33.5799, "lon": -7.6001},
            {"lat": 33.5799, "lon": -7.5999},
            {"lat": 33.5801, "lon": -7.5999},
            {"lat": 33.5801, "lon": -7.6001},
        ],
    })
    return [far.json()["id"], near.json()["id"], middle.json()["id"]]


@pytest.fixture
def planned_stops(client, site_ids):
    response = client.post("/api/tours/plan", json={"site_ids": site_ids, "start": START})
    return response.json()["stops"]


@pytest.fixture
def tour(client, planned_stops):
    return client.post("/api/tours", json={"name": "Maarif", "stops": planned_stops}).json()


# ============================================================
# SITES
# ============================================================

class TestSitesApi:

    def test_create_footprint_site(self, client):
        response = client.post("/api/sites", json={
            "address": "Square",
            "points": [{"lat": 0, "lon": 0}, {"lat": 0, "lon": 0.001},
                       {"lat": 0.001, "lon": 0.001}, {"lat": 0.001, "lon": 0}],
        })

        assert response.status_code == 201
        data = response.json()
        assert '"Polygon"' in data["geom"]
        assert data["centroid"] == {"lat": 0.0005, "lon": 0.0005}
        assert data["area_m2"] == pytest.approx(12321, rel=1e-4)

    def test_single_point_site_uses_legacy_format(self, client):
        data = client.post("/api/sites", json={"address": "Pin", "points": [{"lat": 33.5, "lon": -7.6}]}).json()
        assert data["geom"] == "33.5,-7.6"
        assert data["area_m2"] == 0.0

    def test_two_points_are_rejected(self, client):
        response = client.post("/api/sites", json={
            "address": "Line", "points": [{"lat": 0, "lon": 0}, {"lat": 1, "lon": 1}],
        })
        assert response.status_code == 422

    def test_lookup_by_ids(self, client, site_ids):
        response = client.get("/api/sites", params=[("ids", site_ids[2]), ("ids", site_ids[0])])
        assert [s["address"] for s in response.json()] == ["Middle", "Far"]


# ============================================================
# PLANNING
# ============================================================

class TestPlanningApi:

    def test_plan_orders_by_proximity_with_degraded_fallback(self, client, site_ids, routing):
        response = client.post("/api/tours/plan", json={"site_ids": site_ids, "start": START})

        assert response.status_code == 200
        data = response.json()
        assert [s["address"] for s in data["stops"]] == ["Near", "Middle", "Far"]
        assert [s["order_index"] for s in data["stops"]] == [0, 1, 2]
        assert data["summary"]["strategy"] == "nearest_neighbor"
        assert data["summary"]["degraded"] is True
        assert data["missing_site_ids"] == []
        assert len(routing.trip_calls) == 1

    def test_plan_uses_trip_order_when_available(self, client, site_ids, routing):
        routing.trip_outcome = TripOutcome(order=[0, 2, 1])

        data = client.post("/api/tours/plan", json={"site_ids": site_ids, "start": START}).json()

        assert [s["address"] for s in data["stops"]] == ["Far", "Middle", "Near"]
        assert data["summary"]["strategy"] == "osrm_trip"
        assert data["summary"]["degraded"] is False

    def test_plan_reports_missing_sites(self, client, site_ids):
        data = client.post("/api/tours/plan", json={"site_ids": [site_ids[0], 999], "start": START}).json()
        assert data["missing_site_ids"] == [999]
        assert len(data["stops"]) == 1

    def test_plan_without_start_uses_fallback(self, client, site_ids):
        data = client.post("/api/tours/plan", json={"site_ids": site_ids}).json()
        assert data["start"] == {"lat": 33.5731, "lon": -7.5898}

    def test_empty_selection(self, client):
        assert client.post("/api/tours/plan", json={"site_ids": []}).status_code == 400


# ============================================================
# TOURS
# ============================================================

class TestToursApi:
    """Test suite for tour lifecycle endpoints."""

    def test_create_starts_tour(self, tour):
        assert tour["started_at"] is not None
        assert tour["remaining_count"] == 3
        assert tour["next_stop"]["address"] == "Near"

    def test_create_without_start(self, client, planned_stops):
        data = client.post("/api/tours", json={"name": "Later", "stops": planned_stops, "start": False}).json()
        assert data["started_at"] is None

    def test_list_and_get(self, client, tour):
        listed = client.get("/api/tours").json()
        assert [(t["id"], t["stops_count"]) for t in listed] == [(tour["id"], 3)]
        assert client.get(f"/api/tours/{tour['id']}").json()["name"] == "Maarif"

    def test_unknown_tour_is_404(self, client):
        assert client.get("/api/tours/999").status_code == 404
        assert client.post("/api/tours/999/start").status_code == 404

    def test_delete(self, client, tour):
        assert client.delete(f"/api/tours/{tour['id']}").status_code == 204
        assert client.get(f"/api/tours/{tour['id']}").status_code == 404

    def test_start_resumes_unless_restart(self, client, tour):
        resumed = client.post(f"/api/tours/{tour['id']}/start").json()
        restarted = client.post(f"/api/tours/{tour['id']}/start", params={"restart": "true"}).json()
        assert resumed["started_at"] == tour["started_at"]
        assert restarted["started_at"] != tour["started_at"]

    def test_stop_transitions(self, client, tour):
        tour_id = tour["id"]
        near, middle, far = [s["site_id"] for s in tour["stops"]]

        skipped = client.post(f"/api/tours/{tour_id}/stops/{middle}/skip").json()
        assert skipped["next_stop"]["site_id"] == near
        assert skipped["remaining_count"] == 2
        assert skipped["progress"] == 0

        client.post(f"/api/tours/{tour_id}/stops/{near}/visited")
        done = client.post(f"/api/tours/{tour_id}/stops/{far}/review", json={"notes": "Closed gate"}).json()

        assert done["is_completed"] is True
        assert done["completed_at"] is not None
        assert done["next_stop"] is None
        assert done["stops"][2]["notes"] == "Closed gate"
        assert done["stops"][2]["status"] == "toReview"

    def test_review_without_body(self, client, tour):
        site_id = tour["stops"][0]["site_id"]
        response = client.post(f"/api/tours/{tour['id']}/stops/{site_id}/review")
        assert response.status_code == 200
        assert response.json()["to_review_count"] == 1

    def test_second_transition_is_conflict(self, client, tour):
        site_id = tour["stops"][0]["site_id"]
        client.post(f"/api/tours/{tour['id']}/stops/{site_id}/visited")
        response = client.post(f"/api/tours/{tour['id']}/stops/{site_id}/skip")
        assert response.status_code == 409

    def test_unknown_stop_is_404(self, client, tour):
        assert client.post(f"/api/tours/{tour['id']}/stops/999/visited").status_code == 404

    def test_reorder(self, client, tour):
        near, middle, far = [s["site_id"] for s in tour["stops"]]
        data = client.put(f"/api/tours/{tour['id']}/order", json={"site_ids": [far]}).json()
        assert [s["site_id"] for s in data["stops"]] == [far, near, middle]

    def test_reorder_with_foreign_site_is_conflict(self, client, tour):
        response = client.put(f"/api/tours/{tour['id']}/order", json={"site_ids": [999]})
        assert response.status_code == 409

    def test_remove_stop(self, client, tour):
        site_id = tour["stops"][0]["site_id"]
        data = client.delete(f"/api/tours/{tour['id']}/stops/{site_id}").json()
        assert [s["order_index"] for s in data["stops"]] == [0, 1]

    def test_explicit_complete(self, client, tour):
        data = client.post(f"/api/tours/{tour['id']}/complete").json()
        assert data["completed_at"] is not None


# ============================================================
# ROUTING
# ============================================================

class TestRoutingApi:

    def test_route(self, client, routing):
        response = client.post("/api/routes", json={"start": START, "end": {"lat": 33.58, "lon": -7.60},
                                                   "mode": "walking"})
        assert response.status_code == 200
        data = response.json()
        assert data["distance"] == "1.2 km"
        assert data["duration"] == "3 min"
        assert data["route"]["travel_mode"] == "walking"

    def test_route_failure_is_503(self, client, routing):
        routing.fail_routes = True
        response = client.post("/api/routes", json={"start": START, "end": START})
        assert response.status_code == 503
        assert "timed out" in response.json()["detail"]

    def test_health(self, client):
        assert client.get("/api/routing/health").json()["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["message"] == "fieldtour API"
