import asyncio
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio

from browser_session.errors import NetworkLayerFailure
from browser_session.session import BrowserSession
from browser_session.session_config import SessionConfig
from browser_session.timings import TimingPolicy

NO_WAIT = TimingPolicy(
    launch_settle=0, proxy_settle=0, action_settle=0, navigation_timeout=0.05
)


class FakePage:
    def __init__(self, page_id: int) -> None:
        self.page_id = page_id
        self.url = "about:blank"
        self.closed = False


class FakeDriver:
    """In-memory driver: records calls in order, fails on demand."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.failures: dict[str, BaseException] = {}
        self.pages: list[FakePage] = []
        self.spec = None
        self.unreachable: set[str] = set()
        self.navigation_delay = 0.0
        self.command_error: BaseException | None = NetworkLayerFailure(
            "net::ERR_INVALID_URL"
        )
        # selector -> number of lookups before it is found
        self.appear_after: dict[str, int] = {}
        self.lookups: dict[str, int] = {}
        self.body_text: str | None = None
        self.wait_hangs = False
        self.events: asyncio.Queue = asyncio.Queue()

    def names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.failures:
            raise self.failures[name]

    async def _event_stream(self) -> AsyncIterator[Any]:
        while True:
            event = await self.events.get()
            if event is None:
                return
            yield event

    async def launch(self, spec: Any) -> tuple[str, AsyncIterator[Any]]:
        self.spec = spec
        self._record("launch", spec)
        return "handle", self._event_stream()

    async def new_page(self, handle: Any) -> FakePage:
        self._record("new_page")
        page = FakePage(len(self.pages))
        self.pages.append(page)
        return page

    async def navigate(self, page: FakePage, url: str) -> None:
        self._record("navigate", url)
        if url in self.unreachable:
            raise NetworkLayerFailure("net::ERR_NAME_NOT_RESOLVED", url)
        page.url = url

    async def wait_for_navigation(self, page: FakePage) -> None:
        self._record("wait_for_navigation")
        await asyncio.sleep(self.navigation_delay)

    async def run_command(self, handle: Any, command: Any) -> None:
        self._record("run_command", command)
        if self.command_error is not None:
            raise self.command_error

    async def find_element(self, page: FakePage, selector: str) -> Any:
        self.lookups[selector] = self.lookups.get(selector, 0) + 1
        if "find_element" in self.failures:
            raise self.failures["find_element"]
        needed = self.appear_after.get(selector)
        if needed is not None and self.lookups[selector] > needed:
            return object()
        return None

    async def inner_text(self, page: FakePage, selector: str) -> str | None:
        self._record("inner_text", selector)
        return self.body_text

    async def content(self, page: FakePage) -> str:
        self._record("content")
        return f"<html>{page.url}</html>"

    async def set_user_agent(self, page: FakePage, user_agent: str) -> None:
        self._record("set_user_agent", user_agent)

    async def set_cookies(self, page: FakePage, cookies: Any) -> None:
        self._record("set_cookies", list(cookies))

    async def enable_stealth(self, page: FakePage) -> None:
        self._record("enable_stealth")

    async def close_page(self, page: FakePage) -> None:
        self._record("close_page", page.page_id)
        page.closed = True

    async def close_process(self, handle: Any) -> None:
        self._record("close_process")

    async def kill_process(self, handle: Any) -> None:
        self._record("kill_process")

    async def wait_process(self, handle: Any) -> int | None:
        self._record("wait_process")
        if self.wait_hangs:
            await asyncio.sleep(3600)
        return 0

    def try_wait_process(self, handle: Any) -> int | None:
        self._record("try_wait_process")
        return 0


@pytest.fixture
def driver() -> FakeDriver:
    return FakeDriver()


@pytest.fixture
def no_wait() -> TimingPolicy:
    return NO_WAIT


@pytest_asyncio.fixture
async def session(driver: FakeDriver) -> AsyncIterator[BrowserSession]:
    s = await BrowserSession.launch(SessionConfig(timings=NO_WAIT), driver=driver)
    try:
        yield s
    finally:
        await s.close()
