import asyncio
import subprocess
import sys
from types import SimpleNamespace
from typing import Any

import pytest

zd = pytest.importorskip("zendriver")

from zendriver import cdp  # noqa: E402

from browser_session.commands import ControlCommand  # noqa: E402
from browser_session.cookies import CookieSpec  # noqa: E402
from browser_session.errors import (  # noqa: E402
    DriverProtocolError,
    NavigationIssueError,
    NetworkLayerFailure,
)
from browser_session.session_config import HeadlessMode, SessionConfig  # noqa: E402
from browser_session.zendriver_driver import (  # noqa: E402
    EXTENSION_FEATURE_ARG,
    REQUIRED_ARGS,
    ZendriverDriver,
    build_config,
    to_cookie_param,
)


class _DummyTab:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.sent: list[Any] = []
        self.closed = False

    async def send(self, cdp_obj: Any) -> Any:
        self.sent.append(cdp_obj)
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self) -> None:
        self.closed = True


def _handle_for(tab: _DummyTab) -> SimpleNamespace:
    async def get(url: str, new_tab: bool = False) -> _DummyTab:
        return tab

    return SimpleNamespace(get=get)


def _spec(tmp_path, **kwargs: Any):
    executable = tmp_path / "chrome"
    executable.write_text("")
    return SessionConfig(
        executable=str(executable), user_data_dir=str(tmp_path / "profile"), **kwargs
    ).build_launch_spec()


def _child(code: str) -> subprocess.Popen:
    return subprocess.Popen([sys.executable, "-c", code])


def test_build_config_clears_default_args(tmp_path) -> None:
    config = build_config(_spec(tmp_path))

    assert config._default_browser_args == list(REQUIRED_ARGS)
    assert config.headless is False
    assert config.sandbox is False


def test_build_config_headless_new(tmp_path) -> None:
    config = build_config(_spec(tmp_path, headless=HeadlessMode.HEADLESS_NEW))

    assert config.headless is True
    assert "--headless=old" not in config.browser_args


def test_build_config_keeps_single_disable_features(tmp_path) -> None:
    config = build_config(_spec(tmp_path))
    args = config()

    flags = [a for a in args if a.startswith("--disable-features=")]
    assert len(flags) == 1
    features = flags[0].split("=", 1)[1].split(",")
    assert "TranslateUI" in features
    assert EXTENSION_FEATURE_ARG.split("=", 1)[1] in features


def test_to_cookie_param() -> None:
    param = to_cookie_param(
        CookieSpec(
            name="sid",
            value="x",
            domain="example.com",
            same_site="Lax",
            expires=1700000000,
        )
    )

    assert param.name == "sid"
    assert param.domain == "example.com"
    assert param.same_site == cdp.network.CookieSameSite.LAX
    assert float(param.expires) == 1700000000


@pytest.mark.asyncio
async def test_navigate_reports_network_failure() -> None:
    driver = ZendriverDriver()
    tab = _DummyTab(result=("frame", "loader", "net::ERR_INVALID_URL"))

    with pytest.raises(NetworkLayerFailure) as exc_info:
        await driver.navigate(tab, ControlCommand.clear_data().to_url())

    assert exc_info.value.error_text == "net::ERR_INVALID_URL"


@pytest.mark.asyncio
async def test_navigate_success() -> None:
    driver = ZendriverDriver()
    tab = _DummyTab(result=("frame", "loader", None))

    await driver.navigate(tab, "https://example.com")

    assert len(tab.sent) == 1


@pytest.mark.asyncio
async def test_navigate_send_failure_is_navigation_issue() -> None:
    driver = ZendriverDriver()
    tab = _DummyTab(error=ConnectionError("websocket closed"))

    with pytest.raises(NavigationIssueError):
        await driver.navigate(tab, "https://example.com")


@pytest.mark.asyncio
async def test_run_command_closes_tab_when_navigation_fails() -> None:
    driver = ZendriverDriver()
    tab = _DummyTab(error=ConnectionError("websocket closed"))

    with pytest.raises(NavigationIssueError):
        await driver.run_command(_handle_for(tab), ControlCommand.close_tabs())

    assert tab.closed is True


@pytest.mark.asyncio
async def test_run_command_leaves_tab_to_extension() -> None:
    driver = ZendriverDriver()
    tab = _DummyTab(result=("frame", "loader", "net::ERR_ABORTED"))

    with pytest.raises(NetworkLayerFailure):
        await driver.run_command(_handle_for(tab), ControlCommand.reset_proxy())

    assert tab.closed is False


@pytest.mark.asyncio
async def test_new_page_closes_tab_when_cache_setup_fails() -> None:
    driver = ZendriverDriver()
    driver.cache_enabled = False
    tab = _DummyTab(error=ConnectionError("websocket closed"))

    with pytest.raises(DriverProtocolError):
        await driver.new_page(_handle_for(tab))

    assert tab.closed is True


@pytest.mark.asyncio
async def test_request_timeout_becomes_protocol_error() -> None:
    driver = ZendriverDriver()
    driver.request_timeout = 0.01

    with pytest.raises(DriverProtocolError):
        await driver._request(asyncio.sleep(1))


@pytest.mark.asyncio
async def test_process_checks_without_process() -> None:
    driver = ZendriverDriver()
    handle = SimpleNamespace(_process=None)

    assert await driver.wait_process(handle) == 0
    assert driver.try_wait_process(handle) == 0
    await driver.kill_process(handle)


@pytest.mark.asyncio
async def test_wait_process_returns_exit_code() -> None:
    driver = ZendriverDriver()
    handle = SimpleNamespace(_process=_child("import sys; sys.exit(3)"))

    assert await asyncio.wait_for(driver.wait_process(handle), timeout=30) == 3
    assert driver.try_wait_process(handle) == 3


@pytest.mark.asyncio
async def test_try_wait_process_sees_exited_child() -> None:
    driver = ZendriverDriver()
    process = _child("pass")
    handle = SimpleNamespace(_process=process)

    # 不经过 wait_process，只轮询
    for _ in range(300):
        if driver.try_wait_process(handle) is not None:
            break
        await asyncio.sleep(0.1)

    assert driver.try_wait_process(handle) == 0


@pytest.mark.asyncio
async def test_wait_process_timeout_does_not_block_loop() -> None:
    driver = ZendriverDriver()
    process = _child("import time; time.sleep(30)")
    handle = SimpleNamespace(_process=process)
    loop = asyncio.get_running_loop()

    try:
        assert driver.try_wait_process(handle) is None
        start = loop.time()
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(driver.wait_process(handle), timeout=0.1)
        assert loop.time() - start < 2

        await driver.kill_process(handle)
        code = await asyncio.wait_for(driver.wait_process(handle), timeout=30)
        assert code is not None and code != 0
    finally:
        if process.poll() is None:
            process.kill()
        process.wait()
