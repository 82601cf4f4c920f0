"""
Waiter - 轮询等待元素出现 / 导航完成

驱动的元素查询只是时间点查询，没有“等到出现为止”的原语，
所以用短间隔轮询近似。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from .errors import ElementNotFoundTimeout

if TYPE_CHECKING:
    from .driver import Driver

logger = logging.getLogger(__name__)

WAIT_INTERVAL = 0.01  # 轮询间隔（秒）


async def wait_for_element(
    driver: "Driver", page: Any, selector: str, interval: float = WAIT_INTERVAL
) -> None:
    """无限轮询，调用方应自行加超时"""
    while True:
        try:
            if await driver.find_element(page, selector):
                return
        except Exception as e:
            logger.debug(f"Lookup for {selector!r} failed (retrying): {e}")
        await asyncio.sleep(interval)


async def wait_for_element_with_timeout(
    driver: "Driver", page: Any, selector: str, timeout: float
) -> None:
    """
    在 timeout 秒内等待元素出现

    Raises:
        ElementNotFoundTimeout: 超时仍未找到
    """
    try:
        await asyncio.wait_for(
            wait_for_element(driver, page, selector), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise ElementNotFoundTimeout(selector, timeout) from e
    logger.debug(f"Element found: {selector}")


async def wait_for_navigation(driver: "Driver", page: Any, timeout: float) -> bool:
    """
    等待导航完成，超时不算错误

    Returns:
        True 表示在预算内完成
    """
    try:
        await asyncio.wait_for(driver.wait_for_navigation(page), timeout=timeout)
        return True
    except asyncio.TimeoutError:
        logger.debug(f"Navigation still running after {timeout}s, continuing")
    except Exception as e:
        logger.debug(f"Waiting for navigation failed (ignored): {e}")
    return False
