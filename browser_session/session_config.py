"""
Session Config - 会话启动配置，解析为驱动无关的 LaunchSpec
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ConfigBuildError
from .timings import TimingPolicy

logger = logging.getLogger(__name__)

# 内置扩展：处理伪 URL 控制命令，始终排在扩展列表第一位
EXTENSION_PATH = str(Path(__file__).resolve().parent / "extension")

DEFAULT_ARGS: tuple[str, ...] = (
    "--disable-background-networking",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--disable-client-side-phishing-detection",
    "--disable-default-apps",
    "--disable-dev-shm-usage",
    "--disable-breakpad",
    "--disable-features=TranslateUI",
    "--disable-prompt-on-repost",
    "--no-first-run",
    "--disable-sync",
    "--force-color-profile=srgb",
    "--enable-blink-features=IdleDetection",
    "--lang=en_US",
    "--no-sandbox",
    "--disable-gpu",
    "--disable-smooth-scrolling",
    "--blink-settings=imagesEnabled=false",
    "--enable-lazy-image-loading",
    "--disable-image-animation-resync",
    "--disable-features=TranslateUI",
    "--disable-translate",
    "--disable-logging",
    "--disable-histogram-customizer",
)


class HeadlessMode(str, Enum):
    HEADFUL = "headful"
    HEADLESS_LEGACY = "headless-legacy"
    HEADLESS_NEW = "headless-new"


@dataclass(frozen=True)
class LaunchSpec:
    """驱动启动参数（解析结果）"""

    args: tuple[str, ...]
    extensions: tuple[str, ...]
    headless: HeadlessMode
    port: int
    launch_timeout: float
    request_timeout: float
    disable_default_args: bool = True
    viewport: tuple[int, int] | None = None  # None: 交给驱动决定
    incognito: bool = False
    no_sandbox: bool = False
    cache_enabled: bool = False
    user_data_dir: str | None = None
    executable: str | None = None


@dataclass
class SessionConfig:
    """会话配置"""

    executable: str | None = None
    args: list[str] = field(default_factory=lambda: list(DEFAULT_ARGS))
    headless: HeadlessMode = HeadlessMode.HEADFUL
    sandbox: bool = False  # 默认关闭沙箱，兼容受限环境
    extensions: list[str] = field(default_factory=list)
    incognito: bool = False
    user_data_dir: str | None = None
    port: int = 0  # 0 表示自动分配
    launch_timeout: float = 1.5
    request_timeout: float = 2.0
    cache_enabled: bool = True
    timings: TimingPolicy = field(default_factory=TimingPolicy)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SessionConfig":
        """从字典创建配置"""
        if not data:
            return cls()
        default = cls()
        return cls(
            executable=data.get("executable"),
            args=list(data.get("args", default.args)),
            headless=HeadlessMode(data.get("headless", default.headless)),
            sandbox=data.get("sandbox", default.sandbox),
            extensions=list(data.get("extensions", [])),
            incognito=data.get("incognito", default.incognito),
            user_data_dir=data.get("user_data_dir"),
            port=data.get("port", default.port),
            launch_timeout=data.get("launch_timeout", default.launch_timeout),
            request_timeout=data.get("request_timeout", default.request_timeout),
            cache_enabled=data.get("cache_enabled", default.cache_enabled),
            timings=TimingPolicy.from_dict(data.get("timings")),
        )

    def resolve_extensions(self) -> tuple[str, ...]:
        """内置扩展在前，调用方扩展按原顺序追加"""
        return (EXTENSION_PATH, *self.extensions)

    def build_launch_spec(self) -> LaunchSpec:
        """
        解析为 LaunchSpec

        Raises:
            ConfigBuildError: 配置无效，不返回部分结果
        """
        try:
            return self._build()
        except ConfigBuildError:
            raise
        except Exception as e:
            raise ConfigBuildError(f"Invalid session config: {e}") from e

    def _build(self) -> LaunchSpec:
        if not all(isinstance(arg, str) for arg in self.args):
            raise ConfigBuildError("Browser args must be strings")
        if not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise ConfigBuildError(f"Invalid port: {self.port}")
        if self.launch_timeout <= 0 or self.request_timeout <= 0:
            raise ConfigBuildError("Timeouts must be positive")

        extensions = self.resolve_extensions()
        for path in extensions:
            if not os.path.isdir(path):
                raise ConfigBuildError(f"Extension directory not found: {path}")
        if self.executable and not os.path.isfile(self.executable):
            raise ConfigBuildError(f"Browser executable not found: {self.executable}")
        if self.user_data_dir and os.path.isfile(self.user_data_dir):
            raise ConfigBuildError(
                f"Profile directory is a file: {self.user_data_dir}"
            )

        spec = LaunchSpec(
            args=tuple(self.args),
            extensions=extensions,
            headless=HeadlessMode(self.headless),
            port=self.port,
            launch_timeout=float(self.launch_timeout),
            request_timeout=float(self.request_timeout),
            incognito=self.incognito,
            no_sandbox=not self.sandbox,
            cache_enabled=self.cache_enabled,
            user_data_dir=self.user_data_dir or None,
            executable=self.executable or None,
        )
        logger.debug(f"Resolved launch spec: {spec}")
        return spec
