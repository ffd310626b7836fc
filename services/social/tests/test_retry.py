import pytest
from sqlalchemy.exc import OperationalError

from app.exceptions import TransientStoreError
from app.retry import with_read_retry


class _Session:
    def __init__(self) -> None:
        self.rollbacks = 0

    async def rollback(self) -> None:
        self.rollbacks += 1


def _flaky(failures: int, result="ok"):
    calls = {"n": 0}

    async def read():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        return result

    return read, calls


@pytest.mark.asyncio
async def test_read_succeeds_first_time() -> None:
    session = _Session()
    read, calls = _flaky(0)
    assert await with_read_retry(session, read, attempts=3, base_delay=0) == "ok"
    assert calls["n"] == 1
    assert session.rollbacks == 0


@pytest.mark.asyncio
async def test_read_recovers_after_transient_failures() -> None:
    session = _Session()
    read, calls = _flaky(2, result=42)
    assert await with_read_retry(session, read, attempts=3, base_delay=0) == 42
    assert calls["n"] == 3
    assert session.rollbacks == 2


@pytest.mark.asyncio
async def test_read_gives_up_after_attempts() -> None:
    session = _Session()
    read, calls = _flaky(10)
    with pytest.raises(TransientStoreError) as exc_info:
        await with_read_retry(session, read, attempts=3, base_delay=0)
    assert calls["n"] == 3
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, OperationalError)


@pytest.mark.asyncio
async def test_non_transient_errors_propagate() -> None:
    session = _Session()

    async def read():
        raise ValueError("bad input")

    with pytest.raises(ValueError):
        await with_read_retry(session, read, attempts=3, base_delay=0)
    assert session.rollbacks == 0
