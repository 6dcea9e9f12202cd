import asyncio


class TickCounter:
    """Counts event loop turns while running as a background task."""

    def __init__(self) -> None:
        self.ticks = 0
        self.task: asyncio.Task | None = None

    async def tick(self):
        while True:
            self.ticks += 1
            await asyncio.sleep(0)

    async def __aenter__(self) -> "TickCounter":
        self.task = asyncio.create_task(self.tick())
        return self

    async def __aexit__(self, *_):
        assert self.task is not None
        self.task.cancel()
        await asyncio.gather(self.task, return_exceptions=True)
