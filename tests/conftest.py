from __future__ import annotations

import pytest


@pytest.fixture
def session_factory(tmp_path):
    from gmgn_sniper.db import Base, make_engine, make_session_factory

    # File-based sqlite so every session sees the same data
    db_url = f"sqlite+pysqlite:///{tmp_path / 'gsb.db'}"
    engine = make_engine(db_url)
    Base.metadata.create_all(engine)
    return make_session_factory(db_url)


@pytest.fixture
def bot_service(session_factory, tmp_path):
    from gmgn_sniper.bot import BotService
    from gmgn_sniper.config import AppSettings

    settings = AppSettings(watchlist_config=str(tmp_path / "watchlist.yaml"))
    return BotService(settings=settings, SessionFactory=session_factory)
