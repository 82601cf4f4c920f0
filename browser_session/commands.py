"""
Commands - 通过导航通道发送的会话级控制命令

内置扩展监听这些伪 URL，执行命令后关闭标签页；对调用方而言，
这次“导航”总是以网络层错误结束。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .proxy_config import ProxyConfig

# 内置扩展拦截的 scheme
CONTROL_SCHEME = "chrome"


class CommandKind(str, Enum):
    SET_PROXY = "set_proxy"
    RESET_PROXY = "reset_proxy"
    CLOSE_TABS = "close_tabs"
    CLEAR_DATA = "clear_data"


@dataclass(frozen=True)
class ControlCommand:
    """控制命令：类型 + 可选代理参数"""

    kind: CommandKind
    proxy: ProxyConfig | None = None

    def __post_init__(self) -> None:
        if self.kind is CommandKind.SET_PROXY and self.proxy is None:
            raise ValueError("set_proxy requires a proxy")
        if self.kind is not CommandKind.SET_PROXY and self.proxy is not None:
            raise ValueError(f"{self.kind.value} takes no proxy")

    @classmethod
    def set_proxy(cls, address: str | ProxyConfig) -> "ControlCommand":
        if not isinstance(address, ProxyConfig):
            address = ProxyConfig.parse(address)
        return cls(CommandKind.SET_PROXY, address)

    @classmethod
    def reset_proxy(cls) -> "ControlCommand":
        return cls(CommandKind.RESET_PROXY)

    @classmethod
    def close_tabs(cls) -> "ControlCommand":
        return cls(CommandKind.CLOSE_TABS)

    @classmethod
    def clear_data(cls) -> "ControlCommand":
        return cls(CommandKind.CLEAR_DATA)

    def to_url(self, scheme: str = CONTROL_SCHEME) -> str:
        """生成伪 URL，参数放在查询串里并做 URL 编码"""
        url = f"{scheme}://{self.kind.value}"
        if self.proxy is not None:
            url += f"/?{self.proxy.to_query()}"
        return url

    def __str__(self) -> str:
        if self.proxy is not None:
            return f"{self.kind.value}({self.proxy.server})"
        return self.kind.value
