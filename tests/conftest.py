from __future__ import annotations

import sys
from pathlib import Path


_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC = _REPO_ROOT / "src"
if _SRC.exists():
    sys.path.insert(0, str(_SRC))

import asyncio
from typing import Callable, Optional

import pytest

from cvintake.errors import StorageError

FIXED_NOW = 1_700_000_000.0


class ControlledStorage:
    """Blob storage whose transfers move only when the test says so."""

    def __init__(self):
        self.pending: dict[str, tuple[asyncio.Future, Callable[[int], None]]] = {}
        self.uploaded: list[str] = []

    async def upload(self, data: bytes, path: str, on_progress: Callable[[int], None]) -> str:
        fut = asyncio.get_running_loop().create_future()
        self.pending[path] = (fut, on_progress)
        url = await fut
        self.uploaded.append(path)
        return url

    def path_for(self, name: str) -> str:
        for path in self.pending:
            if path.endswith(f"_{name}"):
                return path
        raise KeyError(name)

    def progress(self, name: str, percent: int) -> None:
        self.pending[self.path_for(name)][1](percent)

    def finish(self, name: str, url: Optional[str] = None) -> str:
        path = self.path_for(name)
        url = url or f"https://blobs.test/{path}"
        self.pending[path][0].set_result(url)
        return url

    def fail(self, name: str) -> None:
        self.pending[self.path_for(name)][0].set_exception(StorageError("connection reset"))


async def settle(rounds: int = 5) -> None:
    """Give scheduled tasks a few loop turns."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def storage() -> ControlledStorage:
    return ControlledStorage()


@pytest.fixture
def clock() -> Callable[[], float]:
    return lambda: FIXED_NOW
