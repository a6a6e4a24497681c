"""Route tests for /api/offline and /api/maps."""
import httpx
import pytest

from idvt.api import deps
from idvt.db.dhis2 import Dhis2Client
from idvt.db.session import get_db
from idvt.services.offline_cache import OfflineCache


@pytest.fixture
def session(session_factory, override):
    db = session_factory()
    yield override(get_db, db)
    db.close()


class TestOffline:
    def test_list_events(self, client, session):
        OfflineCache(session).put_events([{"event": "e1", "ou": "A"}])
        response = client.get("/api/offline/events")
        assert response.status_code == 200
        assert response.json() == [{"event": "e1", "ou": "A"}]

    def test_sync_events(self, client, session, override):
        def handler(request: httpx.Request) -> httpx.Response:
            rows = [["e1"]] if request.url.params["page"] == "1" else []
            return httpx.Response(200, json={"headers": [{"name": "event"}], "rows": rows})

        override(deps.dhis2_client, Dhis2Client("http://dhis2.test", transport=httpx.MockTransport(handler)))
        response = client.post("/api/offline/sync/events", params={"programStage": "ps1"})
        assert response.status_code == 200
        assert response.json() == {"synced": 1}

    def test_sync_requires_dhis2(self, client, session, monkeypatch):
        def not_configured():
            raise RuntimeError("DHIS2 is not configured.")

        monkeypatch.setattr(deps, "require_dhis2", not_configured)
        response = client.post("/api/offline/sync/organisations")
        assert response.status_code == 503


def test_geojson_forwards_levels_and_parents(client, override):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = request.url.params
        return httpx.Response(200, json={"type": "FeatureCollection", "features": []})

    override(deps.dhis2_client, Dhis2Client("http://dhis2.test", transport=httpx.MockTransport(handler)))
    response = client.get("/api/maps/geojson", params=[("level", "3"), ("parent", "A")])
    assert response.status_code == 200
    assert response.json()["type"] == "FeatureCollection"
    assert seen["path"] == "/api/organisationUnits.geojson"
    assert seen["params"].get_list("level") == ["3"]
    assert seen["params"].get_list("parent") == ["A"]
