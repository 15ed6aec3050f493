"""
Tests for the FastAPI backend.

The module-level provider is swapped for one reading a temporary data file so
each test controls exactly what the API serves.
"""

import re

import pytest
from fastapi.testclient import TestClient

from backend import api
from src.core.provider import RadarDataProvider

SAMPLE_YAML = """
LastModified: "2025-03-01"
Items:
  - Label: Kubernetes
    Quadrant: Platforms
    Ring: Adopted
    Owners: Platform Team
  - Label: Flash
    Quadrant: Platforms
    Ring: Retired
  - Label: Jenkins
    Quadrant: Tools
    Ring: Not Recommended
    Moved: true
"""


def node_transforms(svg):
    return dict(re.findall(r'<g class="node[^"]*" id="([^"]+)" transform="([^"]+)"', svg))


@pytest.fixture
def data_file(tmp_path):
    path = tmp_path / "radar.yaml"
    path.write_text(SAMPLE_YAML, encoding="utf-8")
    return path


@pytest.fixture
def client(monkeypatch, data_file):
    monkeypatch.setattr(api, "provider", RadarDataProvider(data_file))
    return TestClient(api.app)


@pytest.fixture
def broken_client(monkeypatch, tmp_path):
    monkeypatch.setattr(api, "provider", RadarDataProvider(tmp_path / "missing.yaml"))
    return TestClient(api.app)


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestRadarSnapshot:
    """GET /api/radar"""

    def test_returns_all_items(self, client):
        response = client.get("/api/radar")

        assert response.status_code == 200
        body = response.json()
        assert body["lastModified"] == "2025-03-01"
        assert [item["label"] for item in body["items"]] == ["Kubernetes", "Flash", "Jenkins"]
        assert body["items"][2] == {
            "label": "Jenkins",
            "quadrant": "Tools",
            "ring": "Not Recommended",
            "moved": True,
            "description": "",
            "owners": "",
        }

    def test_missing_data_is_server_error(self, broken_client):
        response = broken_client.get("/api/radar")

        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to read radar data"}

    def test_reflects_file_changes(self, client, data_file):
        data_file.write_text("Items: []\n", encoding="utf-8")
        assert client.get("/api/radar").json() == {"lastModified": "", "items": []}


class TestLayout:
    """GET /api/layout"""

    def test_positions_placeable_items(self, client):
        response = client.get("/api/layout", params={"radius": 300})

        assert response.status_code == 200
        body = response.json()
        assert body["drawn"] is True
        assert body["rings"] == ["Not Recommended", "In Discovery", "Adopted"]
        assert body["quadrants"][0] == "Platforms"
        assert [node["id"] for node in body["nodes"]] == ["node-0", "node-2"]
        kubernetes = body["nodes"][0]
        assert kubernetes["label"] == "Kubernetes"
        assert kubernetes["ringIndex"] == 2
        assert kubernetes["targetRadius"] == pytest.approx(50.0)

    def test_non_positive_radius_draws_nothing(self, client):
        body = client.get("/api/layout", params={"radius": 0}).json()
        assert body["drawn"] is False
        assert body["nodes"] == []

    def test_infinite_radius_draws_nothing(self, client):
        response = client.get("/api/layout", params={"radius": "inf"})

        assert response.status_code == 200
        body = response.json()
        assert body["drawn"] is False
        assert body["radius"] is None
        assert body["nodes"] == []

    def test_radius_is_required(self, client):
        assert client.get("/api/layout").status_code == 422

    def test_missing_data_is_server_error(self, broken_client):
        assert broken_client.get("/api/layout", params={"radius": 300}).status_code == 500


class TestItems:
    """GET /api/items"""

    def test_list_view_includes_unplaceable(self, client):
        body = client.get("/api/items").json()

        platforms = body["quadrants"][0]
        assert platforms["quadrant"] == "Platforms"
        assert [entry["label"] for entry in platforms["items"]] == ["Kubernetes", "Flash"]

    def test_filters(self, client):
        body = client.get("/api/items", params={"status": "Not Recommended"}).json()
        assert [group["quadrant"] for group in body["quadrants"]] == ["Tools"]


class TestViews:
    """Server-rendered SVG and HTML."""

    def test_svg(self, client):
        response = client.get("/api/radar.svg", params={"theme": "dark"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("image/svg+xml")
        assert "theme-dark" in response.text
        assert ">Kubernetes</text>" in response.text

    def test_pin_moves_only_that_node(self, client):
        plain = node_transforms(client.get("/api/radar.svg").text)
        pinned = node_transforms(client.get("/api/radar.svg", params={"pin": "node-2:120.5,-40"}).text)

        assert pinned["node-2"] == "translate(120.50, -40.00)"
        assert plain["node-2"] != pinned["node-2"]
        assert pinned["node-0"] == plain["node-0"]

    def test_repeated_pins(self, client):
        response = client.get("/api/radar.svg", params=[("pin", "node-0:1,2"), ("pin", "node-2:3,4")])
        transforms = node_transforms(response.text)
        assert transforms == {"node-0": "translate(1.00, 2.00)", "node-2": "translate(3.00, 4.00)"}

    def test_malformed_pin_rejected(self, client):
        assert client.get("/api/radar.svg", params={"pin": "node-2"}).status_code == 422
        assert client.get("/", params={"pin": "node-2:x,1"}).status_code == 422

    def test_infinite_width_renders_empty_svg(self, client):
        response = client.get("/api/radar.svg", params={"width": "inf"})

        assert response.status_code == 200
        assert "<circle" not in response.text
        assert 'width="inf"' not in response.text

    def test_invalid_theme_rejected(self, client):
        assert client.get("/api/radar.svg", params={"theme": "sepia"}).status_code == 422

    def test_index_page(self, client):
        response = client.get("/", params={"selected": "Jenkins"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert '<h2 id="details-title">Jenkins</h2>' in response.text
        assert "Last modified: 2025-03-01" in response.text

    def test_index_page_links_keep_pins(self, client):
        response = client.get("/", params={"pin": "node-0:1,2"})

        assert response.status_code == 200
        assert 'name="pin" value="node-0:1.0,2.0"' in response.text
        assert "pin=node-0%3A1.0%2C2.0" in response.text

    def test_index_page_missing_data(self, broken_client):
        assert broken_client.get("/").status_code == 500


class TestConfig:
    """config.json loading."""

    def test_defaults_when_missing(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RADAR_DATA_PATH", raising=False)

        config = api.load_config(tmp_path / "config.json")

        assert config["port"] == api.DEFAULT_PORT
        assert config["radar_data_path"] == api.radar_root / api.DEFAULT_DATA_PATH

    def test_reads_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("RADAR_DATA_PATH", raising=False)
        config_file = tmp_path / "config.json"
        config_file.write_text('{"radar_data_path": "/srv/radar.yaml", "backend": {"port": 9000}}')

        config = api.load_config(config_file)

        assert config["port"] == 9000
        assert str(config["radar_data_path"]) == "/srv/radar.yaml"

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RADAR_DATA_PATH", str(tmp_path / "other.yaml"))
        config = api.load_config(tmp_path / "config.json")
        assert config["radar_data_path"] == tmp_path / "other.yaml"
