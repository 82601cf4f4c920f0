"""
Browser Session Service - FastAPI 入口

使用方式:
    uvicorn browser_session.main:app --host 0.0.0.0 --port 8000

或者直接运行:
    python -m browser_session.main
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .cookies import CookieSpec
from .errors import BrowserSessionError, ElementNotFoundTimeout, SessionClosedError
from .page_params import PageParams
from .session import BrowserSession, MyIPResult
from .session_config import HeadlessMode, SessionConfig
from .user_agents import random_user_agent

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# 配置
HEADLESS_MODE = HeadlessMode.HEADLESS_NEW
ACQUIRE_TIMEOUT = 60  # 等待会话锁的上限（秒）


# 全局实例
session: BrowserSession | None = None
# 会话级状态（代理等）没有内部加锁，这里串行化
session_lock = asyncio.Lock()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    global session

    # 启动时
    logger.info("Starting browser session service...")
    session = await BrowserSession.launch(SessionConfig(headless=HEADLESS_MODE))
    logger.info("Browser session service started")

    try:
        yield
    finally:
        # 关闭时
        logger.info("Stopping browser session service...")
        await session.close()
        session = None
        logger.info("Browser session service stopped")


app = FastAPI(
    title="Browser Session Service",
    description="浏览器会话服务，支持代理切换、Cookie、UA 轮换、反检测、元素等待",
    version="0.1.0",
    lifespan=lifespan,
)


# 请求/响应模型
class CookieModel(BaseModel):
    name: str
    value: str = ""
    url: str | None = None
    domain: str | None = None
    path: str | None = None
    secure: bool | None = None
    http_only: bool | None = None
    same_site: str | None = None
    expires: float | None = None


class OpenRequest(BaseModel):
    """打开页面请求"""

    url: str = Field(..., description="目标 URL")
    proxy: str | None = Field(
        None, description="代理地址，格式: host:port 或 user:pass@host:port"
    )
    user_agent: str | None = Field(None, description="UA")
    random_user_agent: bool = Field(False, description="使用随机 UA（忽略 user_agent）")
    cookies: list[CookieModel] = Field(default_factory=list)
    stealth_mode: bool = Field(False, description="启用反检测")
    duration: float = Field(0.0, ge=0, description="导航后等待（秒）")
    wait_for: str | None = Field(None, description="等待的 CSS 选择器")
    wait_timeout: float = Field(5.0, ge=0, description="等待元素的超时（秒）")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "url": "https://example.com",
                    "proxy": "user:pass@proxy.example.com:8080",
                    "random_user_agent": True,
                    "stealth_mode": True,
                    "duration": 0.5,
                    "wait_for": "#main-content",
                    "wait_timeout": 5,
                }
            ]
        }
    }

    def to_params(self) -> PageParams:
        return PageParams(
            proxy=self.proxy,
            wait_for_element=(self.wait_for, self.wait_timeout) if self.wait_for else None,
            user_agent=random_user_agent() if self.random_user_agent else self.user_agent,
            cookies=[CookieSpec(**c.model_dump()) for c in self.cookies],
            stealth_mode=self.stealth_mode,
            duration=self.duration,
        )


class OpenResponse(BaseModel):
    """打开页面响应"""

    url: str = Field(..., description="请求的 URL")
    html: str = Field(..., description="页面 HTML")
    elapsed: float = Field(..., description="耗时（秒）")


class ProxyRequest(BaseModel):
    address: str = Field(..., description="代理地址")


class TimingsModel(BaseModel):
    launch_settle: float = Field(0.28, ge=0)
    proxy_settle: float = Field(0.18, ge=0)
    action_settle: float = Field(0.08, ge=0)
    navigation_timeout: float = Field(0.7, ge=0)


class StatusResponse(BaseModel):
    """状态响应"""

    status: str
    headless: str
    timings: TimingsModel


def _require_session() -> BrowserSession:
    if session is None or not session.is_running:
        raise HTTPException(status_code=503, detail="Service not ready")
    return session


@asynccontextmanager
async def _locked():
    try:
        await asyncio.wait_for(session_lock.acquire(), timeout=ACQUIRE_TIMEOUT)
    except asyncio.TimeoutError:
        raise HTTPException(status_code=503, detail="Session busy")
    try:
        yield
    finally:
        session_lock.release()


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, ElementNotFoundTimeout):
        return HTTPException(status_code=504, detail=str(e))
    if isinstance(e, SessionClosedError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=502, detail=f"{type(e).__name__}: {e}")


# API 端点
@app.post("/open", response_model=OpenResponse)
async def open_page(request: OpenRequest) -> dict[str, Any]:
    """
    按参数打开页面并返回 HTML

    - **url**: 目标 URL
    - **proxy**: 打开前切换的代理（可选）
    - **stealth_mode**: 是否启用反检测
    - **wait_for**: 等待的 CSS 选择器（可选，超时不报错）
    """
    current = _require_session()
    try:
        params = request.to_params()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    start_time = time.time()
    async with _locked():
        try:
            page = await current.open_with_param(request.url, params)
        except (BrowserSessionError, ValueError) as e:
            logger.warning(f"Error opening {request.url}: {e}")
            raise _to_http_error(e)
        try:
            html = await current.driver.content(page)
        except BrowserSessionError as e:
            raise _to_http_error(e)
        finally:
            # 页面由调用方负责关闭
            try:
                await current.driver.close_page(page)
            except Exception as e:
                logger.warning(f"Error closing page: {e}")

    return {"url": request.url, "html": html, "elapsed": round(time.time() - start_time, 3)}


@app.put("/proxy")
async def set_proxy(request: ProxyRequest) -> dict[str, str]:
    """切换会话代理"""
    current = _require_session()
    async with _locked():
        try:
            await current.set_proxy(request.address)
        except (BrowserSessionError, ValueError) as e:
            raise _to_http_error(e)
    return {"message": f"Proxy set to {request.address}"}


@app.delete("/proxy")
async def reset_proxy() -> dict[str, str]:
    """恢复系统代理"""
    current = _require_session()
    async with _locked():
        try:
            await current.reset_proxy()
        except BrowserSessionError as e:
            raise _to_http_error(e)
    return {"message": "Proxy reset"}


@app.post("/tabs/close")
async def close_tabs() -> dict[str, str]:
    """关闭所有标签页"""
    current = _require_session()
    async with _locked():
        try:
            await current.close_tabs()
        except BrowserSessionError as e:
            raise _to_http_error(e)
    return {"message": "Tabs closed"}


@app.delete("/data")
async def clear_data() -> dict[str, str]:
    """清除浏览数据"""
    current = _require_session()
    async with _locked():
        try:
            await current.clear_data()
        except BrowserSessionError as e:
            raise _to_http_error(e)
    return {"message": "Browsing data cleared"}


@app.get("/myip", response_model=MyIPResult)
async def myip() -> MyIPResult:
    """当前出口 IP"""
    current = _require_session()
    async with _locked():
        try:
            return await current.myip()
        except BrowserSessionError as e:
            raise _to_http_error(e)


@app.get("/timings", response_model=TimingsModel)
async def get_timings() -> dict[str, float]:
    return _require_session().timings.to_dict()


@app.put("/timings", response_model=TimingsModel)
async def set_timings(request: TimingsModel) -> dict[str, float]:
    """更新等待策略（未给出的字段保持当前值），之后开始的操作生效"""
    current = _require_session()
    current.set_timings(
        current.timings.replace(**request.model_dump(exclude_unset=True))
    )
    return current.timings.to_dict()


@app.get("/status", response_model=StatusResponse)
async def get_status() -> dict[str, Any]:
    """获取服务状态"""
    if session is None:
        raise HTTPException(status_code=503, detail="Service not ready")
    return {
        "status": session.state.value,
        "headless": HEADLESS_MODE.value,
        "timings": session.timings.to_dict(),
    }


@app.get("/health")
async def health_check() -> dict[str, str]:
    """健康检查"""
    return {"status": "ok"}


# 直接运行入口
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "browser_session.main:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )
