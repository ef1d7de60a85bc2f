"""End-to-end tests through the application lifespan."""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

import app.main as main
from app.app_config import AppEnvironConfig
from app.utils.app_errors import StateLoadError


@pytest.fixture
def app_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppEnvironConfig:
    """Config pointing the registry at a temporary file."""
    app_config = AppEnvironConfig(
        STORE_PATH=str(tmp_path / "store.db"),
        APPLICATIONS=["live"],
        CTRL_URL="",
        EXPIRE_INTERVAL_SECONDS=3600,
        ADMIN_API_KEY=None,
    )
    monkeypatch.setattr(main, "get_app_environ_config", lambda: app_config)
    return app_config


def publish(client: TestClient, key: str, name: str = "cam1") -> int:
    return client.post("/publish", data={"app": "live", "name": name, "auth": key}).status_code


class TestApplication:
    def test_publish_lifecycle(self, app_config: AppEnvironConfig):
        """Add a key, publish with it, get refused while live, release, publish again."""
        with TestClient(main.app) as client:
            first = client.post("/admin/streams", json={"application": "live", "name": "cam1", "auth_key": "k1"})
            client.post("/admin/streams", json={"application": "live", "name": "cam1", "auth_key": "k2"})
            assert first.status_code == 200

            assert publish(client, "nope") == 401
            assert publish(client, "k1") == 200
            assert publish(client, "k2") == 409
            assert publish(client, "k1") == 200

            assert client.post("/unpublish", data={"app": "live", "name": "cam1"}).status_code == 200
            assert client.post("/unpublish", data={"app": "live", "name": "cam1"}).status_code == 401
            assert publish(client, "k2") == 200

            stream_id = first.json()["results"]["id"]
            blocked = client.post(f"/admin/streams/{stream_id}/block", json={"blocked": True})
            assert blocked.status_code == 200
            assert publish(client, "k1") == 403

            health = client.get("/health")
            assert health.json()["results"] == {"streams": 2}

    def test_state_survives_restart(self, app_config: AppEnvironConfig):
        """Records and the secret are reloaded from the state file."""
        with TestClient(main.app) as client:
            added = client.post("/admin/streams", json={"application": "live", "name": "cam1", "auth_key": "k1"})
            secret = main.app.state.store.secret

        assert Path(app_config.STORE_PATH).exists()

        with TestClient(main.app) as client:
            streams = client.get("/admin/streams").json()["results"]["streams"]
            assert [s["id"] for s in streams] == [added.json()["results"]["id"]]
            assert main.app.state.store.secret == secret

    def test_remove_unknown_is_404(self, app_config: AppEnvironConfig):
        with TestClient(main.app) as client:
            response = client.delete("/admin/streams/st_missing")

        assert response.status_code == 404

    def test_corrupt_state_aborts_startup(self, app_config: AppEnvironConfig):
        """An unreadable state file is fatal."""
        Path(app_config.STORE_PATH).write_bytes(b"not a registry")

        with pytest.raises(StateLoadError):
            with TestClient(main.app):
                pass


class TestGranianKwargs:
    def test_single_worker(self, monkeypatch: pytest.MonkeyPatch):
        """The registry is process local, so extra workers are ignored."""
        monkeypatch.setattr(main, "get_app_environ_config", lambda: AppEnvironConfig(API_WORKERS=4))

        kwargs = main.build_granian_kwargs()

        assert kwargs["workers"] == 1
        assert kwargs["interface"] == "asgi"
