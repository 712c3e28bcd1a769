import asyncio
import logging

import pytest

from app.utils.async_utils import create_task_with_error_handling, run_with_timeout


async def _fail():
    raise RuntimeError("census down")


async def test_background_failure_is_logged(caplog):
    with caplog.at_level(logging.ERROR, logger="app.utils.async_utils"):
        task = create_task_with_error_handling(_fail(), task_name="census_data_load")
        with pytest.raises(RuntimeError):
            await task
        # Done callbacks run on the next loop iteration
        await asyncio.sleep(0)

    assert "Exception in task 'census_data_load': census down" in caplog.text


async def test_run_with_timeout_raises():
    with pytest.raises(asyncio.TimeoutError):
        await run_with_timeout(asyncio.sleep(1), timeout=0.01)
