"""
Timings - 会话的固定等待时间（秒）
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class TimingPolicy:
    """驱动内部异步操作没有确认信号，用固定等待来吸收"""

    launch_settle: float = 0.28  # 启动后等待
    proxy_settle: float = 0.18  # 切换代理后等待
    action_settle: float = 0.08  # 其他控制命令后等待
    navigation_timeout: float = 0.7  # 等待导航完成的上限

    def __post_init__(self) -> None:
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value < 0:
                raise ValueError(f"{f.name} must be >= 0, got {value}")

    def replace(self, **changes: float) -> "TimingPolicy":
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TimingPolicy":
        """从字典创建配置"""
        if not data:
            return cls()
        default = cls()
        return cls(
            launch_settle=float(data.get("launch_settle", default.launch_settle)),
            proxy_settle=float(data.get("proxy_settle", default.proxy_settle)),
            action_settle=float(data.get("action_settle", default.action_settle)),
            navigation_timeout=float(
                data.get("navigation_timeout", default.navigation_timeout)
            ),
        )
