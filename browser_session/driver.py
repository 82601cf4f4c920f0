"""
Driver - 驱动适配层接口

会话只依赖这里的 Protocol；具体实现见 zendriver_driver.py。
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Protocol, Sequence

from .commands import ControlCommand
from .cookies import CookieSpec
from .session_config import LaunchSpec

Handle = Any  # 驱动自己的浏览器进程句柄
Page = Any  # 驱动自己的页面对象


class Driver(Protocol):
    """浏览器驱动能力"""

    async def launch(self, spec: LaunchSpec) -> tuple[Handle, AsyncIterator[Any]]:
        """启动浏览器，返回 (进程句柄, 事件流)；失败抛 LaunchError"""
        ...

    async def new_page(self, handle: Handle) -> Page: ...

    async def navigate(self, page: Page, url: str) -> None:
        """
        发出导航请求

        Raises:
            NavigationIssueError: 请求未能发出
            NetworkLayerFailure: 浏览器报告 net:: 错误
        """
        ...

    async def wait_for_navigation(self, page: Page) -> None: ...

    async def run_command(self, handle: Handle, command: ControlCommand) -> None:
        """执行控制命令；成功时以 NetworkLayerFailure 结束"""
        ...

    async def find_element(self, page: Page, selector: str) -> Any:
        """时间点查询，找不到返回 None"""
        ...

    async def inner_text(self, page: Page, selector: str) -> Optional[str]: ...

    async def content(self, page: Page) -> str: ...

    async def set_user_agent(self, page: Page, user_agent: str) -> None: ...

    async def set_cookies(self, page: Page, cookies: Sequence[CookieSpec]) -> None: ...

    async def enable_stealth(self, page: Page) -> None: ...

    async def close_page(self, page: Page) -> None: ...

    async def close_process(self, handle: Handle) -> None:
        """优雅关闭浏览器"""
        ...

    async def kill_process(self, handle: Handle) -> None: ...

    async def wait_process(self, handle: Handle) -> Optional[int]: ...

    def try_wait_process(self, handle: Handle) -> Optional[int]:
        """非阻塞检查进程是否退出，仍在运行返回 None"""
        ...
