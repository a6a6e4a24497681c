"""Route tests for /api/documents."""
import httpx

from idvt.api import deps


class TestDocuments:
    def test_missing_document(self, client, store):
        response = client.get("/api/documents/i-indicators/nope")
        assert response.status_code == 404

    def test_put_get_list_delete(self, client, store):
        document = {"id": "i1", "numerator": "n1", "factor": "*100"}
        response = client.put("/api/documents/i-indicators/i1", json=document)
        assert response.status_code == 200
        assert response.json() == {"id": "i1", "namespace": "i-indicators"}

        assert client.get("/api/documents/i-indicators/i1").json() == document
        assert client.get("/api/documents/i-indicators").json() == [document]

        assert client.delete("/api/documents/i-indicators/i1").status_code == 204
        assert client.get("/api/documents/i-indicators").json() == []

    def test_upstream_failure_is_bad_gateway(self, client, override):
        class Unreachable:
            async def get(self, namespace, document_id):
                raise httpx.ConnectError("connection refused")

        override(deps.document_store, Unreachable())
        response = client.get("/api/documents/i-indicators/i1")
        assert response.status_code == 502

    def test_storage_not_configured(self, client, monkeypatch):
        def not_configured():
            raise RuntimeError("DHIS2 is not configured.")

        monkeypatch.setattr(deps, "get_document_store", not_configured)
        response = client.get("/api/documents/i-indicators")
        assert response.status_code == 503
        assert "not configured" in response.json()["detail"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
