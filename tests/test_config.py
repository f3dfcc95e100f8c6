from __future__ import annotations

import pytest

from activerow.config import DbConfig, make_engine


def test_from_env_reads_prefixed_variables() -> None:
    config = DbConfig.from_env(
        {
            "ACTIVEROW_DB_URL": "sqlite://",
            "ACTIVEROW_DB_ECHO": "yes",
            "ACTIVEROW_DB_POOL_RECYCLE": "3600",
        }
    )
    assert config == DbConfig(url="sqlite://", echo=True, pool_recycle=3600)


def test_from_env_defaults() -> None:
    config = DbConfig.from_env({"APP_DB_URL": "sqlite://"}, prefix="APP_")
    assert config.echo is False
    assert config.pool_recycle is None
    assert config.pool_pre_ping is True


@pytest.mark.parametrize(
    "kwargs",
    [
        {"url": ""},
        {"url": "sqlite://", "pool_recycle": 0},
    ],
)
def test_invalid_config_raises(kwargs) -> None:
    with pytest.raises(ValueError):
        DbConfig(**kwargs)


def test_missing_url_in_env_raises() -> None:
    with pytest.raises(ValueError):
        DbConfig.from_env({})


def test_make_engine() -> None:
    engine = make_engine(DbConfig(url="sqlite://"))
    try:
        with engine.connect() as conn:
            assert conn.exec_driver_sql("SELECT 1").scalar() == 1
    finally:
        engine.dispose()
