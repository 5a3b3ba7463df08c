"""Tests for data, snapshot, layout, backup and photo endpoints."""
from io import BytesIO

from PIL import Image

from conftest import make_graph, make_person
from famgraph.persistence import export_portable


def _seed(client):
    mum = client.post("/api/people", json={"firstName": "Mum"}).json()
    kid = client.post(f"/api/people/{mum['id']}/children", json={"firstName": "Kid"}).json()
    return mum, kid


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


class TestDataFile:
    def test_missing(self, client):
        resp = client.get("/api/data")
        assert resp.status_code == 404

    def test_written_after_edit(self, client, file_store):
        mum, _ = _seed(client)
        resp = client.get("/api/data")
        assert resp.status_code == 200
        doc = resp.json()
        assert doc["version"] == 1
        assert mum["id"] in {p["id"] for p in doc["people"]}
        assert file_store.data_path.exists()

    def test_previous_state_snapshotted(self, client, file_store):
        _seed(client)
        # one snapshot per accepted edit
        assert len(list(file_store.snapshots_dir.iterdir())) == 2

    def test_post_replaces(self, client):
        doc = make_graph(make_person("x", "Xena")).to_dict()
        assert client.post("/api/data", json=doc).json() == {"ok": True}
        assert [p["id"] for p in client.get("/api/people").json()] == ["x"]

    def test_post_invalid(self, client):
        resp = client.post("/api/data", json={"version": 3})
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid family tree JSON format."

    def test_post_unparseable(self, client):
        resp = client.post("/api/data", content=b"{oops", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400

    def test_manual_snapshot(self, client, file_store):
        resp = client.post("/api/snapshot")
        data = resp.json()
        assert data["ok"] is True
        assert (file_store.snapshots_dir / data["filename"]).exists()


class TestLayoutEndpoints:
    def test_layout(self, client):
        mum, kid = _seed(client)
        data = client.get("/api/layout").json()
        nodes = {n["id"]: n for n in data["nodes"]}
        assert nodes[mum["id"]]["generation"] == 0
        assert nodes[kid["id"]]["generation"] == 1
        assert nodes[kid["id"]]["y"] > nodes[mum["id"]]["y"]
        assert nodes[kid["id"]]["label"] == "Kid"
        assert data["edges"] == [{
            "id": f"e-{mum['id']}-{kid['id']}", "source": mum["id"], "target": kid["id"],
        }]

    def test_graph_figure(self, client):
        _seed(client)
        fig = client.get("/api/graph").json()
        assert len(fig["data"]) == 2

    def test_empty_graph_figure(self, client):
        fig = client.get("/api/graph").json()
        assert fig["layout"]["title"]["text"] == "No family data found"


class TestBackup:
    def test_export_clears_dirty(self, client):
        _seed(client)
        assert client.get("/api/status").json() == {"dirty": True, "people": 2}
        resp = client.get("/api/export")
        assert resp.status_code == 200
        assert resp.headers["content-disposition"].startswith('attachment; filename="family-tree.')
        assert len(resp.json()["people"]) == 2
        assert client.get("/api/status").json()["dirty"] is False

    def test_import(self, client):
        body = export_portable(make_graph(make_person("a"), make_person("b", parents=["a"])))
        resp = client.post("/api/import", content=body)
        assert resp.json() == {"ok": True, "people": 2}
        assert client.get("/api/status").json() == {"dirty": False, "people": 2}

    def test_import_rejected(self, client):
        _seed(client)
        resp = client.post("/api/import", content=b"garbage")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Failed to read or parse the JSON file."
        assert len(client.get("/api/people").json()) == 2


class TestPhoto:
    def test_upload(self, client):
        buf = BytesIO()
        Image.new("RGB", (800, 400)).save(buf, format="PNG")
        data = client.post("/api/photo", content=buf.getvalue()).json()
        assert data["photoDataUrl"].startswith("data:image/jpeg;base64,")
        assert data["warning"] is None

    def test_bad_upload_is_soft(self, client):
        resp = client.post("/api/photo", content=b"nope")
        assert resp.status_code == 200
        assert resp.json()["photoDataUrl"] is None
        assert "not attached" in resp.json()["warning"]
