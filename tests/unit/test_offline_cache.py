"""Tests for the local offline cache."""
import asyncio

import httpx

from idvt.db.dhis2 import Dhis2Client
from idvt.models.offline import OfflineEvent
from idvt.services.offline_cache import OfflineCache


def _client(handler) -> Dhis2Client:
    return Dhis2Client("http://dhis2.test", transport=httpx.MockTransport(handler))


class TestEvents:
    def test_upsert_by_event_id(self, db):
        cache = OfflineCache(db)
        cache.put_events([{"event": "e1", "v": 1}])
        cache.put_events([{"event": "e1", "v": 2}], program_stage="ps1")
        assert cache.all_events() == [{"event": "e1", "v": 2}]
        assert db.get(OfflineEvent, "e1").program_stage == "ps1"

    def test_sync_pages_until_empty(self, db):
        pages = {
            "1": [["e1", "A"], ["e2", "B"]],
            "2": [["e3", "C"]],
        }
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/events/query.json"
            page = request.url.params["page"]
            seen.append(page)
            return httpx.Response(200, json={
                "headers": [{"name": "event"}, {"name": "ou"}],
                "rows": pages.get(page, []),
            })

        total = asyncio.run(OfflineCache(db).sync_events(_client(handler), "ps1"))
        assert total == 3
        assert seen == ["1", "2", "3"]
        assert [row["event"] for row in OfflineCache(db).all_events()] == ["e1", "e2", "e3"]


class TestOrganisationsAndThemes:
    def test_sync_organisations(self, db):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"organisationUnits": [
                {"id": "A", "name": "Uganda", "leaf": False},
                {"id": "B", "name": "Kampala", "leaf": True},
            ]})

        assert asyncio.run(OfflineCache(db).sync_organisations(_client(handler))) == 2
        units = OfflineCache(db).all_organisations()
        assert [(u.title, u.is_leaf) for u in units] == [("Kampala", True), ("Uganda", False)]

    def test_sync_themes_once(self, db):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request.url.path)
            return httpx.Response(200, json={"options": [
                {"code": "T1", "name": "Health"},
                {"code": "T2", "name": "Education"},
            ]})

        cache = OfflineCache(db)
        assert asyncio.run(cache.sync_themes(_client(handler), "os1")) == 2
        assert asyncio.run(cache.sync_themes(_client(handler), "os1")) == 0
        assert calls == ["/api/optionSets/os1.json"]
        assert [t.title for t in cache.all_themes()] == ["Health", "Education"]
