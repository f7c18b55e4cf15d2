"""Environment-driven settings and store selection."""

import pytest


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("RECON_STORE", "RECON_DATA_DIR", "RECON_DB_PATH", "RECON_LOG_LEVEL", "RECON_LOG_JSON"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestSettings:

    def test_defaults(self, clean_env):
        from core.config import REPO_ROOT, get_settings

        settings = get_settings()

        assert settings.store_backend == "json"
        assert settings.data_dir == REPO_ROOT / "data"
        assert settings.db_path == REPO_ROOT / "reconciliation.db"
        assert settings.log_level == "INFO"
        assert settings.log_json is False

    def test_environment_overrides(self, clean_env, tmp_path):
        from core.config import get_settings

        clean_env.setenv("RECON_STORE", " SQLite ")
        clean_env.setenv("RECON_DB_PATH", str(tmp_path / "x.db"))
        clean_env.setenv("RECON_LOG_LEVEL", "debug")
        clean_env.setenv("RECON_LOG_JSON", "yes")

        settings = get_settings()

        assert settings.store_backend == "sqlite"
        assert settings.db_path == tmp_path / "x.db"
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True


class TestBuildRecordStore:

    def test_json_backend(self, tmp_path):
        from core.config import Settings, build_record_store
        from storage.json_store import JsonDirectoryRecordStore

        store = build_record_store(Settings(data_dir=tmp_path))

        assert isinstance(store, JsonDirectoryRecordStore)
        assert store.root == tmp_path

    def test_sqlite_backend(self, temp_db):
        from core.config import Settings, build_record_store
        from storage.sqlite_store import SqliteRecordStore

        store = build_record_store(Settings(store_backend="sqlite", db_path=temp_db))

        assert isinstance(store, SqliteRecordStore)
        assert store.db_path == temp_db

    def test_unknown_backend(self):
        from core.config import Settings, build_record_store

        with pytest.raises(ValueError, match="Unknown record store 'mongo'"):
            build_record_store(Settings(store_backend="mongo"))
