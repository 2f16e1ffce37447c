import time

import pytest

from draftxfer.timer import ScopedTimer


def test_elapsed_grows():
    timer = ScopedTimer()
    first = timer.elapsed_sec()
    time.sleep(0.01)
    second = timer.elapsed_sec()
    assert first >= 0.0
    assert second >= first + 0.009


def test_callback_called_once_on_exit():
    seen = []
    with ScopedTimer(seen.append) as timer:
        time.sleep(0.005)
        assert seen == []
    assert len(seen) == 1
    assert seen[0] >= 0.004
    assert seen[0] <= timer.elapsed_sec()


def test_callback_called_on_exception():
    seen = []
    with pytest.raises(RuntimeError):
        with ScopedTimer(seen.append):
            raise RuntimeError("boom")
    assert len(seen) == 1
    assert seen[0] >= 0.0


def test_no_callback_exit_returns_false():
    timer = ScopedTimer()
    assert timer.__exit__(None, None, None) is False