"""
Browser Session

一个无头浏览器会话管理库，支持：
- 浏览器进程启动 / 关闭（优雅关闭失败时强杀）
- 带上限的导航等待
- 通过内置扩展切换代理、关闭标签页、清除数据
- UA / Cookie / 反检测注入
- 元素轮询等待
- 随机 UA 轮换
"""

from .commands import CommandKind, ControlCommand
from .cookies import CookieSpec
from .errors import (
    AdvisoryResult,
    BrowserSessionError,
    ConfigBuildError,
    DriverProtocolError,
    ElementNotFoundTimeout,
    LaunchError,
    NavigationIssueError,
    NetworkLayerFailure,
    SerializationError,
    SessionClosedError,
    advisory,
)
from .page_params import PageParams
from .proxy_config import ProxyConfig
from .session import BrowserSession, MyIPResult, SessionState, open_session
from .session_config import (
    DEFAULT_ARGS,
    EXTENSION_PATH,
    HeadlessMode,
    LaunchSpec,
    SessionConfig,
)
from .timings import TimingPolicy
from .user_agents import USER_AGENTS, random_user_agent
from .waiter import wait_for_element, wait_for_element_with_timeout

__all__ = [
    "BrowserSession",
    "SessionState",
    "open_session",
    "MyIPResult",
    "SessionConfig",
    "LaunchSpec",
    "HeadlessMode",
    "DEFAULT_ARGS",
    "EXTENSION_PATH",
    "TimingPolicy",
    "PageParams",
    "CookieSpec",
    "ProxyConfig",
    "ControlCommand",
    "CommandKind",
    "USER_AGENTS",
    "random_user_agent",
    "wait_for_element",
    "wait_for_element_with_timeout",
    "AdvisoryResult",
    "advisory",
    "BrowserSessionError",
    "LaunchError",
    "ConfigBuildError",
    "NavigationIssueError",
    "NetworkLayerFailure",
    "ElementNotFoundTimeout",
    "SerializationError",
    "DriverProtocolError",
    "SessionClosedError",
]
