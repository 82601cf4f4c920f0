"""
Errors - 会话错误分类与“建议性”调用
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable

logger = logging.getLogger(__name__)


class BrowserSessionError(Exception):
    """所有会话错误的基类"""


class LaunchError(BrowserSessionError):
    """浏览器进程启动失败"""


class ConfigBuildError(BrowserSessionError):
    """会话配置无法解析为启动参数"""


class NavigationIssueError(BrowserSessionError):
    """导航请求未能发出"""


class NetworkLayerFailure(BrowserSessionError):
    """浏览器报告的网络层错误（net::ERR_*）"""

    def __init__(self, error_text: str, url: str | None = None):
        self.error_text = error_text
        self.url = url
        super().__init__(f"{error_text} ({url})" if url else error_text)


class ElementNotFoundTimeout(BrowserSessionError):
    """等待元素超时"""

    def __init__(self, selector: str, timeout: float):
        self.selector = selector
        self.timeout = timeout
        super().__init__(f"Element {selector!r} not found within {timeout}s")


class SerializationError(BrowserSessionError):
    """页面内容无法解析"""


class DriverProtocolError(BrowserSessionError):
    """其他底层驱动错误，保留原始信息"""


class SessionClosedError(BrowserSessionError):
    """会话已关闭或尚未运行"""


@dataclass
class AdvisoryResult:
    """建议性调用的结果：失败只记录日志，不向上抛出"""

    action: str
    ok: bool
    error: BaseException | None = None

    def __bool__(self) -> bool:
        return self.ok


async def advisory(awaitable: Awaitable[Any], action: str) -> AdvisoryResult:
    """
    执行一个建议性调用

    Args:
        awaitable: 要等待的调用
        action: 日志里使用的动作名称

    Returns:
        AdvisoryResult，失败时 ok=False
    """
    try:
        await awaitable
    except Exception as e:
        logger.warning(f"Advisory action '{action}' failed: {e!r}")
        return AdvisoryResult(action=action, ok=False, error=e)
    return AdvisoryResult(action=action, ok=True)
