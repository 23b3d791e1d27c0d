# safedrop/realtime.py
import asyncio
import json
from typing import AsyncIterator, Iterable, Optional, Tuple


class _Hub:
    def __init__(self) -> None:
        # queue -> (account id, is admin)
        self._subscribers: "dict[asyncio.Queue[str], Tuple[Optional[int], bool]]" = {}

    async def publish(self, event: str, payload: dict, to: Optional[Iterable[int]] = None) -> None:
        """
        Push an SSE event to connected subscribers.

        `to` limits delivery to those account ids; admins always get the
        event. `to=None` means every subscriber, `to=()` admins only.
        """
        audience = None if to is None else {i for i in to if i is not None}
        data = json.dumps(payload, ensure_ascii=False)
        # SSE frame: event: <name>\ndata: <json>\n\n
        msg = f"event: {event}\ndata: {data}\n\n"
        for queue, (account_id, is_admin) in list(self._subscribers.items()):
            if audience is None or is_admin or account_id in audience:
                await queue.put(msg)

    async def subscribe(self, account_id: Optional[int] = None, is_admin: bool = False) -> AsyncIterator[str]:
        """
        Async generator of SSE frames for one client.
        """
        queue: "asyncio.Queue[str]" = asyncio.Queue()
        self._subscribers[queue] = (account_id, is_admin)
        try:
            while True:
                yield await queue.get()
        finally:
            self._subscribers.pop(queue, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


hub = _Hub()
