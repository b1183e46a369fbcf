"""Tip recording collaborators (best effort, called after confirmation)."""

import asyncio
from dataclasses import asdict
from typing import Protocol

import requests

from .types import TipRecord


class TipRecorder(Protocol):
    async def record(self, record: TipRecord) -> None: ...


class HttpTipRecorder:
    """POSTs confirmed tips to an HTTP endpoint (e.g. ``/api/tip``)."""

    def __init__(self, url: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    async def record(self, record: TipRecord) -> None:
        await asyncio.to_thread(self._post, record)

    def _post(self, record: TipRecord) -> None:
        response = self.session.post(
            self.url,
            json=asdict(record),
            headers={"x-transaction-hash": record.transaction_hash},
            timeout=self.timeout,
        )
        response.raise_for_status()
