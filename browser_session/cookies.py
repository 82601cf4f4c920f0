"""
Cookies - 打开页面时注入的 Cookie 描述
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class CookieSpec:
    """单个 Cookie"""

    name: str
    value: str
    url: str | None = None
    domain: str | None = None
    path: str | None = None
    secure: bool | None = None
    http_only: bool | None = None
    same_site: str | None = None  # Strict / Lax / None
    expires: float | None = None  # 秒级时间戳

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Cookie name is required")
        if not (self.url or self.domain):
            raise ValueError(f"Cookie {self.name!r} needs a url or a domain")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CookieSpec":
        return cls(
            name=data["name"],
            value=data.get("value", ""),
            url=data.get("url"),
            domain=data.get("domain"),
            path=data.get("path"),
            secure=data.get("secure"),
            http_only=data.get("http_only", data.get("httpOnly")),
            same_site=data.get("same_site", data.get("sameSite")),
            expires=data.get("expires"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}
