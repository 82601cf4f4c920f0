"""
Browser Session - 单个浏览器实例的生命周期、页面操作与会话级控制
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, AsyncIterator

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from . import waiter
from .commands import ControlCommand
from .errors import (
    BrowserSessionError,
    LaunchError,
    NetworkLayerFailure,
    SerializationError,
    SessionClosedError,
    advisory,
)
from .page_params import PageParams
from .session_config import SessionConfig
from .timings import TimingPolicy

if TYPE_CHECKING:
    from .driver import Driver, Handle, Page

logger = logging.getLogger(__name__)

MYIP_URL = "https://api.myip.com/"
PROCESS_EXIT_TIMEOUT = 5.0  # 关闭时等待进程退出的上限（秒）
TRY_WAIT_ATTEMPTS = 4


class MyIPResult(BaseModel):
    """出口 IP 查询结果"""

    model_config = ConfigDict(populate_by_name=True)

    ip: str
    country: str
    country_code: str = Field(..., alias="cc")

    @classmethod
    def parse(cls, body: str | None) -> "MyIPResult":
        """
        解析 IP 查询页面的 body 文本

        Raises:
            SerializationError: 内容为空或不是预期的 JSON
        """
        if not body or not body.strip():
            raise SerializationError("IP lookup page has no body text")
        try:
            return cls.model_validate_json(body)
        except ValidationError as e:
            raise SerializationError(
                f"Unexpected IP lookup response: {body[:200]!r}"
            ) from e


class SessionState(str, Enum):
    LAUNCHING = "launching"
    RUNNING = "running"
    CLOSING = "closing"
    CLOSED = "closed"


async def _drain_events(events: AsyncIterator[Any]) -> None:
    """持续消费驱动事件流，否则驱动的控制通道会阻塞"""
    count = 0
    try:
        async for _ in events:
            count += 1
    except Exception as e:
        logger.warning(f"Driver event stream failed after {count} events: {e}")
        return
    logger.debug(f"Driver event stream ended after {count} events")


class BrowserSession:
    """
    持有一个运行中的浏览器进程和它的事件消费任务

    通过 launch() 创建；close() 之后不能再使用，需要新建会话。
    同一会话上的并发调用之间没有加锁，需要严格顺序的调用方应自行串行化。
    """

    def __init__(
        self,
        driver: "Driver",
        handle: "Handle",
        drain_task: asyncio.Task,
        timings: TimingPolicy,
    ):
        self._driver = driver
        self._handle = handle
        self._drain_task = drain_task
        self._timings = timings
        self._state = SessionState.LAUNCHING

    @classmethod
    async def launch(
        cls,
        config: SessionConfig | None = None,
        driver: "Driver | None" = None,
    ) -> "BrowserSession":
        """
        启动浏览器并返回会话

        Args:
            config: 会话配置，默认 SessionConfig()
            driver: 驱动实现，默认使用 zendriver

        Raises:
            ConfigBuildError: 配置无效
            LaunchError: 浏览器启动失败
        """
        config = config or SessionConfig()
        spec = config.build_launch_spec()
        if driver is None:
            from .zendriver_driver import ZendriverDriver

            driver = ZendriverDriver()

        logger.info("Launching browser...")
        try:
            handle, events = await driver.launch(spec)
        except BrowserSessionError:
            raise
        except Exception as e:
            raise LaunchError(f"Browser launch failed: {e}") from e

        drain_task = asyncio.create_task(
            _drain_events(events), name="browser-session-drain"
        )
        session = cls(driver, handle, drain_task, config.timings)
        try:
            # 吸收启动初期的竞争
            await asyncio.sleep(config.timings.launch_settle)
        except BaseException:
            await session.close()
            raise
        session._state = SessionState.RUNNING
        logger.info("Browser launched")
        return session

    @classmethod
    async def launch_with_default_config(cls) -> "BrowserSession":
        return await cls.launch(SessionConfig())

    async def __aenter__(self) -> "BrowserSession":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SessionState.RUNNING

    @property
    def timings(self) -> TimingPolicy:
        return self._timings

    @property
    def driver(self) -> "Driver":
        return self._driver

    def set_timings(self, timings: TimingPolicy) -> None:
        """替换等待策略；已经开始的操作继续使用旧值"""
        self._timings = timings
        logger.debug(f"Timings replaced: {timings}")

    def _ensure_running(self) -> None:
        if self._state is not SessionState.RUNNING:
            raise SessionClosedError(f"Browser session is {self._state.value}")

    async def close(self) -> None:
        """
        关闭浏览器：优雅关闭，失败则强杀；等待进程退出；最后总是取消事件任务

        重复调用不做任何事。
        """
        if self._state in (SessionState.CLOSING, SessionState.CLOSED):
            return
        self._state = SessionState.CLOSING
        logger.info("Closing browser session...")
        try:
            await self._shutdown_process()
        finally:
            self._drain_task.cancel()
            await asyncio.wait([self._drain_task])
            self._state = SessionState.CLOSED
            logger.info("Browser session closed")

    async def _shutdown_process(self) -> None:
        try:
            await self._driver.close_process(self._handle)
        except Exception as e:
            logger.warning(f"Graceful close failed ({e}), killing browser")
            try:
                await self._driver.kill_process(self._handle)
            except Exception as e:
                logger.warning(f"Error killing browser: {e}")

        try:
            await asyncio.wait_for(
                self._driver.wait_process(self._handle),
                timeout=PROCESS_EXIT_TIMEOUT,
            )
            return
        except Exception as e:
            logger.debug(f"Waiting for browser exit failed: {e!r}")

        for attempt in range(1, TRY_WAIT_ATTEMPTS + 1):
            try:
                self._driver.try_wait_process(self._handle)
                return
            except Exception as e:
                logger.debug(f"Exit check {attempt}/{TRY_WAIT_ATTEMPTS} failed: {e}")
        logger.warning("Browser process state unknown after close")

    # 页面

    async def new_page(self) -> "Page":
        """打开一个空白页"""
        self._ensure_running()
        return await self._driver.new_page(self._handle)

    async def open_on_page(self, url: str, page: "Page") -> None:
        """
        在已有页面上导航

        只有导航请求发不出去才报错；等待完成超时、网络层失败都不算错误。
        """
        self._ensure_running()
        timings = self._timings
        logger.debug(f"Navigating to: {url}")
        try:
            await self._driver.navigate(page, url)
        except NetworkLayerFailure as e:
            logger.info(f"Navigation to {url} ended with {e.error_text}")
            return
        await waiter.wait_for_navigation(self._driver, page, timings.navigation_timeout)

    async def open(self, url: str) -> "Page":
        """新建页面并导航"""
        page = await self.new_page()
        try:
            await self.open_on_page(url, page)
        except Exception:
            await advisory(self._driver.close_page(page), "close page after failed open")
            raise
        return page

    async def open_with_duration(self, url: str, duration: float) -> "Page":
        """打开页面后固定等待 duration 秒"""
        page = await self.open(url)
        await asyncio.sleep(duration)
        return page

    async def open_with_param(self, url: str, params: PageParams) -> "Page":
        """
        按参数打开页面

        顺序不能变：代理必须在标签页创建之前生效。

        Args:
            url: 目标 URL
            params: 页面参数

        Returns:
            打开的页面，调用方负责关闭
        """
        # 1. 切换代理
        if params.proxy:
            await self.set_proxy(params.proxy)

        # 2. 空白页
        page = await self.new_page()
        try:
            # 3. UA / 4. Cookies
            if params.user_agent:
                await self._driver.set_user_agent(page, params.user_agent)
            if params.cookies:
                await self._driver.set_cookies(page, params.cookies)

            # 5. 反检测（失败不影响功能）
            if params.stealth_mode:
                await advisory(self._driver.enable_stealth(page), "enable stealth mode")

            # 6. 导航
            await self.open_on_page(url, page)
        except Exception:
            await advisory(self._driver.close_page(page), "close page after failed open")
            raise

        # 7. 等待页面稳定
        await asyncio.sleep(params.duration)

        # 8. 等待元素
        if params.wait_for_element:
            selector, timeout = params.wait_for_element
            await advisory(
                self.wait_for_element_with_timeout(page, selector, timeout),
                f"wait for {selector}",
            )

        return page

    async def wait_for_element(self, page: "Page", selector: str) -> None:
        await waiter.wait_for_element(self._driver, page, selector)

    async def wait_for_element_with_timeout(
        self, page: "Page", selector: str, timeout: float
    ) -> None:
        await waiter.wait_for_element_with_timeout(
            self._driver, page, selector, timeout
        )

    # 会话级控制命令

    async def set_proxy(self, address: str) -> None:
        """
        切换代理

        Args:
            address: host:port / user:pass@host:port / scheme://...

        Raises:
            ValueError: 地址无法解析
        """
        command = ControlCommand.set_proxy(address)
        await self._run_control(command, self._timings.proxy_settle)
        logger.info(f"Proxy switched to {command.proxy.server}")

    async def reset_proxy(self) -> None:
        await self._run_control(ControlCommand.reset_proxy(), self._timings.action_settle)

    async def close_tabs(self) -> None:
        await self._run_control(ControlCommand.close_tabs(), self._timings.action_settle)

    async def clear_data(self) -> None:
        await self._run_control(ControlCommand.clear_data(), self._timings.action_settle)

    async def _run_control(self, command: ControlCommand, settle: float) -> None:
        # 命令执行后那次“导航”必然以网络层错误结束，这就是成功信号；
        # 其他错误（通道关闭、驱动崩溃）照常抛出
        self._ensure_running()
        logger.debug(f"Running control command: {command}")
        try:
            await self._driver.run_command(self._handle, command)
        except NetworkLayerFailure as e:
            logger.debug(f"Control command {command} acknowledged ({e.error_text})")
        await asyncio.sleep(settle)

    async def myip(self) -> MyIPResult:
        """
        通过 IP 查询服务获取当前出口 IP

        Raises:
            SerializationError: 页面内容为空或无法解析
        """
        page = await self.open(MYIP_URL)
        try:
            body = await self._driver.inner_text(page, "body")
            return MyIPResult.parse(body)
        finally:
            await advisory(self._driver.close_page(page), "close IP lookup page")


@asynccontextmanager
async def open_session(
    config: SessionConfig | None = None,
    driver: "Driver | None" = None,
) -> AsyncIterator[BrowserSession]:
    """启动会话，退出时总是关闭"""
    session = await BrowserSession.launch(config, driver)
    try:
        yield session
    finally:
        await session.close()
