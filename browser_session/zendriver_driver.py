"""
Zendriver Driver - 基于 zendriver 的驱动实现

每个会话使用一个独立的 ZendriverDriver 实例。
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Sequence

import zendriver as zd
from zendriver import cdp

from .commands import ControlCommand
from .cookies import CookieSpec
from .errors import (
    BrowserSessionError,
    DriverProtocolError,
    LaunchError,
    NavigationIssueError,
    NetworkLayerFailure,
    advisory,
)
from .session_config import HeadlessMode, LaunchSpec
from .stealth import STEALTH_SOURCE

if TYPE_CHECKING:
    from zendriver import Browser, Tab

logger = logging.getLogger(__name__)

# 连接 DevTools 时每次重试的间隔（秒）
CONNECTION_RETRY_INTERVAL = 0.25
# 传输层必需，清空默认参数时保留
REQUIRED_ARGS = ("--remote-allow-origins=*",)
# 命令行加载扩展依赖这个 feature 被关闭；多个 --disable-features 由 zendriver 合并
EXTENSION_FEATURE_ARG = "--disable-features=DisableLoadExtensionCommandLineSwitch"
# 会话自己给导航完成设上限，这里只是兜底
READY_STATE_TIMEOUT = 60

_STOP = object()

TARGET_EVENTS = (
    cdp.target.TargetCreated,
    cdp.target.TargetInfoChanged,
    cdp.target.TargetDestroyed,
)


def build_config(spec: LaunchSpec) -> zd.Config:
    """LaunchSpec -> zendriver.Config"""
    args = list(spec.args)
    if spec.headless is HeadlessMode.HEADLESS_LEGACY:
        args.append("--headless=old")
    if spec.incognito:
        args.append("--incognito")
    args.append(EXTENSION_FEATURE_ARG)

    config = zd.Config(
        user_data_dir=spec.user_data_dir,
        headless=spec.headless is HeadlessMode.HEADLESS_NEW,
        browser_executable_path=spec.executable,
        browser_args=args,
        sandbox=not spec.no_sandbox,
        port=spec.port or None,
        browser_connection_timeout=CONNECTION_RETRY_INTERVAL,
        browser_connection_max_tries=max(
            1, math.ceil(spec.launch_timeout / CONNECTION_RETRY_INTERVAL)
        ),
    )
    if spec.disable_default_args:
        config._default_browser_args = list(REQUIRED_ARGS)
    for path in spec.extensions:
        config.add_extension(path)
    return config


def to_cookie_param(cookie: CookieSpec) -> cdp.network.CookieParam:
    """CookieSpec -> CDP CookieParam"""
    return cdp.network.CookieParam(
        name=cookie.name,
        value=cookie.value,
        url=cookie.url,
        domain=cookie.domain,
        path=cookie.path,
        secure=cookie.secure,
        http_only=cookie.http_only,
        same_site=cdp.network.CookieSameSite(cookie.same_site)
        if cookie.same_site
        else None,
        expires=cdp.network.TimeSinceEpoch(cookie.expires)
        if cookie.expires
        else None,
    )


async def _iter_events(queue: asyncio.Queue) -> AsyncIterator[Any]:
    while True:
        event = await queue.get()
        if event is _STOP:
            return
        yield event


class ZendriverDriver:
    """zendriver 驱动适配"""

    def __init__(self) -> None:
        self.request_timeout = 2.0
        self.cache_enabled = True
        self._events: asyncio.Queue = asyncio.Queue()

    async def _request(self, awaitable: Awaitable[Any]) -> Any:
        """带超时的 CDP 请求，底层异常统一转换为 DriverProtocolError"""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.request_timeout)
        except BrowserSessionError:
            raise
        except asyncio.TimeoutError as e:
            raise DriverProtocolError(
                f"Request timed out after {self.request_timeout}s"
            ) from e
        except Exception as e:
            raise DriverProtocolError(str(e) or repr(e)) from e

    async def launch(self, spec: LaunchSpec) -> tuple["Browser", AsyncIterator[Any]]:
        config = build_config(spec)
        logger.info(f"Starting browser (headless={spec.headless.value})")
        try:
            browser = await zd.start(config)
        except Exception as e:
            raise LaunchError(f"Could not start browser: {e}") from e

        self.request_timeout = spec.request_timeout
        self.cache_enabled = spec.cache_enabled

        def on_target_event(event: Any) -> None:
            self._events.put_nowait(event)

        for event_type in TARGET_EVENTS:
            browser.connection.add_handler(event_type, on_target_event)
        logger.info("Browser started")
        return browser, _iter_events(self._events)

    async def new_page(self, handle: "Browser") -> "Tab":
        tab = await self._request(handle.get("about:blank", new_tab=True))
        if not self.cache_enabled:
            try:
                await self._request(
                    tab.send(cdp.network.set_cache_disabled(cache_disabled=True))
                )
            except Exception:
                await advisory(self.close_page(tab), "close new tab")
                raise
        return tab

    async def navigate(self, page: "Tab", url: str) -> None:
        try:
            result = await self._request(page.send(cdp.page.navigate(url=url)))
        except DriverProtocolError as e:
            raise NavigationIssueError(f"Could not navigate to {url}: {e}") from e
        error_text = result[2] if len(result) > 2 else None
        if error_text:
            raise NetworkLayerFailure(error_text, url)

    async def wait_for_navigation(self, page: "Tab") -> None:
        await page.wait_for_ready_state(until="complete", timeout=READY_STATE_TIMEOUT)

    async def run_command(self, handle: "Browser", command: ControlCommand) -> None:
        # 扩展处理完命令会自己关掉这个标签页
        tab = await self.new_page(handle)
        try:
            await self.navigate(tab, command.to_url())
        except NetworkLayerFailure:
            raise
        except Exception:
            await advisory(self.close_page(tab), f"close {command} tab")
            raise

    async def find_element(self, page: "Tab", selector: str) -> Any:
        return await self._request(page.query_selector(selector))

    async def inner_text(self, page: "Tab", selector: str) -> str | None:
        expression = (
            "(() => { const el = document.querySelector(%s); "
            "return el ? el.innerText : null; })()" % json.dumps(selector)
        )
        value = await self._request(page.evaluate(expression))
        return value if isinstance(value, str) else None

    async def content(self, page: "Tab") -> str:
        return await self._request(page.get_content())

    async def set_user_agent(self, page: "Tab", user_agent: str) -> None:
        await self._request(
            page.send(cdp.network.set_user_agent_override(user_agent=user_agent))
        )

    async def set_cookies(self, page: "Tab", cookies: Sequence[CookieSpec]) -> None:
        params = [to_cookie_param(c) for c in cookies]
        await self._request(page.send(cdp.network.set_cookies(cookies=params)))
        logger.debug(f"Set {len(params)} cookies")

    async def enable_stealth(self, page: "Tab") -> None:
        await self._request(
            page.send(
                cdp.page.add_script_to_evaluate_on_new_document(source=STEALTH_SOURCE)
            )
        )

    async def close_page(self, page: "Tab") -> None:
        await self._request(page.close())

    async def close_process(self, handle: "Browser") -> None:
        try:
            await handle.stop()
        finally:
            self._events.put_nowait(_STOP)

    # handle._process 是 subprocess.Popen，stop() 之后为 None

    async def kill_process(self, handle: "Browser") -> None:
        process = getattr(handle, "_process", None)
        if process is not None and process.poll() is None:
            process.kill()

    async def wait_process(self, handle: "Browser") -> int | None:
        process = getattr(handle, "_process", None)
        if process is None:
            return 0
        return await asyncio.to_thread(process.wait)

    def try_wait_process(self, handle: "Browser") -> int | None:
        process = getattr(handle, "_process", None)
        if process is None:
            return 0
        return process.poll()
