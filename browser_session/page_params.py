"""
Page Params - 单次打开页面的参数
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .cookies import CookieSpec


@dataclass
class PageParams:
    """open_with_param 的参数"""

    proxy: str | None = None  # 打开前切换的代理地址
    wait_for_element: tuple[str, float] | None = None  # (选择器, 超时秒数)
    user_agent: str | None = None
    cookies: list[CookieSpec] = field(default_factory=list)
    stealth_mode: bool = False
    duration: float = 0.0  # 导航后的等待（秒）

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"duration must be >= 0, got {self.duration}")
        if self.wait_for_element is not None:
            selector, timeout = self.wait_for_element
            if timeout < 0:
                raise ValueError(f"wait timeout must be >= 0, got {timeout}")
            self.wait_for_element = (selector, float(timeout))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "PageParams":
        """从字典创建参数"""
        if not data:
            return cls()
        wait_for = data.get("wait_for_element")
        return cls(
            proxy=data.get("proxy"),
            wait_for_element=tuple(wait_for) if wait_for else None,
            user_agent=data.get("user_agent"),
            cookies=[
                c if isinstance(c, CookieSpec) else CookieSpec.from_dict(c)
                for c in data.get("cookies", [])
            ],
            stealth_mode=data.get("stealth_mode", False),
            duration=data.get("duration", 0.0),
        )
