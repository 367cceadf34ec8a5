import asyncio

import pytest


@pytest.mark.asyncio
async def test_run_without_sources_returns(tmp_path):
    from gmgn_sniper.config import AppSettings
    from services.sniper.main import run

    settings = AppSettings(
        database_url=f"sqlite+pysqlite:///{tmp_path / 'gsb.db'}",
        watchlist_config=str(tmp_path / "missing.yaml"),
        watchlist_refresh_sec=0,
    )
    await asyncio.wait_for(run(settings), timeout=5)


@pytest.mark.asyncio
async def test_telegram_loop_forwards_each_address():
    from services.sniper.main import telegram_loop

    batches = [["MintA", "MintB"], ["MintC"]]
    got: list[str] = []
    done = asyncio.Event()

    class Source:
        def poll_once(self):
            return batches.pop(0) if batches else []

    class Executor:
        async def on_signal(self, addr):
            got.append(addr)
            if len(got) == 3:
                done.set()

    task = asyncio.create_task(telegram_loop(Source(), Executor()))
    await asyncio.wait_for(done.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert got == ["MintA", "MintB", "MintC"]
