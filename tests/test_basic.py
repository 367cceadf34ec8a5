from gmgn_sniper.config import AppSettings, BotConfig
from gmgn_sniper.db import Base


def test_settings_load():
    s = AppSettings()
    assert s is not None
    assert s.gmgn_rate_limit_delay_sec == 1.0


def test_db_models_present():
    assert {"trades", "watched_tokens", "alerts", "bot_state"} <= set(Base.metadata.tables)


def test_bot_config_defaults():
    cfg = AppSettings().bot
    assert isinstance(cfg, BotConfig)
    assert cfg.allow_degraded is False
    assert cfg.min_liquidity == 100.0
