from backend.database.db import to_async_url
from backend.database.models import Base


def test_neon_url_is_converted_for_asyncpg():
    url, connect_args = to_async_url("postgresql://u:p@ep-x.neon.tech/db?sslmode=require&channel_binding=require")
    assert url == "postgresql+asyncpg://u:p@ep-x.neon.tech/db"
    assert connect_args == {"ssl": True}


def test_plain_url_keeps_other_params():
    url, connect_args = to_async_url("postgres://u@localhost:5432/db?application_name=intake")
    assert url == "postgresql+asyncpg://u@localhost:5432/db?application_name=intake"
    assert connect_args == {}


def test_tables_are_registered():
    assert set(Base.metadata.tables) == {"conversations", "messages", "handoff_requests"}
