"""
Tests for database URL handling and the unit-of-work session scope.
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app import database
from app.database import get_db_context, normalize_database_url
from app.models import User


class TestNormalizeDatabaseUrl:
    """Hosted Postgres URLs are rewritten for asyncpg."""

    def test_unset(self):
        assert normalize_database_url("") == (None, False)

    def test_postgres_scheme_with_sslmode_require(self):
        url, use_ssl = normalize_database_url("postgres://u:p@db.example.com:5432/orca?sslmode=require")

        assert url.render_as_string(hide_password=False) == "postgresql+asyncpg://u:p@db.example.com:5432/orca"
        assert use_ssl is True

    def test_sslmode_disable_overrides_default(self):
        url, use_ssl = normalize_database_url("postgresql://u:p@localhost/orca?sslmode=disable", default_ssl=True)

        assert url.drivername == "postgresql+asyncpg"
        assert "sslmode" not in url.query
        assert use_ssl is False

    def test_default_ssl_applies_without_sslmode(self):
        _, with_ssl = normalize_database_url("postgresql+asyncpg://u:p@localhost/orca", default_ssl=True)
        _, without_ssl = normalize_database_url("postgresql+asyncpg://u:p@localhost/orca", default_ssl=False)

        assert with_ssl is True
        assert without_ssl is False

    def test_other_query_parameters_kept(self):
        url, _ = normalize_database_url("postgresql://db.example.com/orca?sslmode=require&application_name=orca")

        assert url.render_as_string(hide_password=False) == (
            "postgresql+asyncpg://db.example.com/orca?application_name=orca"
        )

    def test_non_postgres_url_untouched(self):
        url, use_ssl = normalize_database_url("sqlite+aiosqlite:///./orca.db")

        assert url.drivername == "sqlite+aiosqlite"
        assert use_ssl is False


class TestGetDbContext:
    """Commit on success, roll back on error."""

    @pytest.fixture
    def session_maker(self, test_engine, monkeypatch):
        maker = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        monkeypatch.setattr(database, "async_session_maker", maker)
        return maker

    async def _user_count(self, maker) -> int:
        async with maker() as session:
            return (await session.execute(select(func.count(User.id)))).scalar_one()

    @pytest.mark.asyncio
    async def test_commits_on_success(self, session_maker):
        async with get_db_context() as db:
            db.add(User(email="committed@example.com", currency="NGN"))

        assert await self._user_count(session_maker) == 1

    @pytest.mark.asyncio
    async def test_rolls_back_on_error(self, session_maker):
        with pytest.raises(ValueError):
            async with get_db_context() as db:
                db.add(User(email="rolled-back@example.com", currency="NGN"))
                await db.flush()
                raise ValueError("boom")

        assert await self._user_count(session_maker) == 0

    @pytest.mark.asyncio
    async def test_requires_configured_database(self, monkeypatch):
        monkeypatch.setattr(database, "async_session_maker", None)

        with pytest.raises(RuntimeError, match="Database not configured"):
            async with get_db_context():
                pass
