import asyncio
import time


class SystemClock:
    """Clock backed by wall time and asyncio.sleep."""

    def time(self) -> float:
        return time.time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
