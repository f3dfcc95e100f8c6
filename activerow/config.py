from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class DbConfig:
    url: str
    echo: bool = False
    pool_pre_ping: bool = True
    pool_recycle: int | None = None

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.url:
            raise ValueError("url must be a non-empty SQLAlchemy database URL")
        if self.pool_recycle is not None and self.pool_recycle <= 0:
            raise ValueError("pool_recycle must be > 0 seconds when set")

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        prefix: str = "ACTIVEROW_",
    ) -> "DbConfig":
        """
        Build a config from environment variables.

        Reads ``<prefix>DB_URL`` (required), ``<prefix>DB_ECHO`` and
        ``<prefix>DB_POOL_RECYCLE``.
        """
        env = os.environ if environ is None else environ
        url = env.get(f"{prefix}DB_URL", "")
        echo = env.get(f"{prefix}DB_ECHO", "").strip().lower() in _TRUE_VALUES
        recycle_raw = env.get(f"{prefix}DB_POOL_RECYCLE")
        pool_recycle = int(recycle_raw) if recycle_raw else None
        return cls(url=url, echo=echo, pool_recycle=pool_recycle)


def make_engine(config: DbConfig) -> Engine:
    kwargs: dict = {"echo": config.echo, "pool_pre_ping": config.pool_pre_ping}
    if config.pool_recycle is not None:
        kwargs["pool_recycle"] = config.pool_recycle
    return create_engine(config.url, **kwargs)
