import dataclasses

import pytest

from browser_session.timings import TimingPolicy


def test_defaults() -> None:
    timings = TimingPolicy()

    assert timings.launch_settle == 0.28
    assert timings.proxy_settle == 0.18
    assert timings.action_settle == 0.08
    assert timings.navigation_timeout == 0.7


@pytest.mark.parametrize(
    "field", ["launch_settle", "proxy_settle", "action_settle", "navigation_timeout"]
)
def test_negative_duration_rejected(field) -> None:
    with pytest.raises(ValueError):
        TimingPolicy(**{field: -0.001})


def test_zero_is_allowed() -> None:
    TimingPolicy(0, 0, 0, 0)


def test_policy_is_immutable() -> None:
    timings = TimingPolicy()

    with pytest.raises(dataclasses.FrozenInstanceError):
        timings.proxy_settle = 1.0  # type: ignore[misc]


def test_replace_returns_new_policy() -> None:
    timings = TimingPolicy()

    changed = timings.replace(action_settle=0.5)

    assert changed.action_settle == 0.5
    assert timings.action_settle == 0.08
    with pytest.raises(ValueError):
        timings.replace(action_settle=-1)


def test_from_dict_fills_missing_keys() -> None:
    timings = TimingPolicy.from_dict({"navigation_timeout": 2})

    assert timings == TimingPolicy(navigation_timeout=2.0)
    assert TimingPolicy.from_dict(None) == TimingPolicy()
    assert TimingPolicy.from_dict(timings.to_dict()) == timings
