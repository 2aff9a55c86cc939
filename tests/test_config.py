"""
Tests for settings loading.
"""

import pytest

from congregation_planner.core.config import Settings, find_env_file


class TestDatabaseUrl:
    @pytest.mark.parametrize(
        "url",
        [
            "postgresql://app:secret@db:5432/planner",
            "postgres://app:secret@db:5432/planner",
        ],
    )
    def test_sync_url_uses_asyncpg(self, url: str) -> None:
        settings = Settings(database_url=url)

        assert settings.database_url == "postgresql+asyncpg://app:secret@db:5432/planner"

    def test_async_url_untouched(self) -> None:
        url = "sqlite+aiosqlite:///:memory:"

        assert Settings(database_url=url).database_url == url


class TestFindEnvFile:
    def test_nearest_parent(self, tmp_path) -> None:
        """The closest .env above the starting file wins."""
        (tmp_path / ".env").write_text("DEBUG=false\n")
        nested = tmp_path / "app" / "core"
        nested.mkdir(parents=True)
        (nested.parent / ".env").write_text("DEBUG=true\n")

        assert find_env_file(nested / "config.py") == nested.parent / ".env"

    def test_missing(self, tmp_path) -> None:
        assert find_env_file(tmp_path / "config.py", max_depth=1) is None
