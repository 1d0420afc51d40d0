"""Unit tests for the throttle decision engine."""

from unittest.mock import Mock

import pytest

from node_throttle.adapters.counter_store.base import ThrottleState
from node_throttle.adapters.counter_store.in_memory import InMemoryCounterStore
from node_throttle.core.errors import ThrottledAppError, ValidationAppError
from node_throttle.services.throttle_service import ThrottleEngine, decayed_counter
from node_throttle.services.whitelist import WhitelistSet


def _build_engine(clock: Mock, whitelist: list[str] | None = None) -> ThrottleEngine:
    wl = WhitelistSet()
    wl.init(whitelist or [])
    store = InMemoryCounterStore(clock=clock)
    return ThrottleEngine(store, wl, clock=clock)


def test_accepts_up_to_max_then_rejects(clock: Mock) -> None:
    engine = _build_engine(clock)

    assert [engine.accept("node", 3, 60) for _ in range(3)] == [True, True, True]
    assert engine.get_node("node").counter == 3

    assert engine.accept("node", 3, 60) is False
    assert engine.get_node("node").counter == 4


def test_accept_recovers_after_period_elapses(clock: Mock) -> None:
    engine = _build_engine(clock)
    for _ in range(4):
        engine.accept("node", 3, 60)

    clock.return_value = 1061.0

    assert engine.accept("node", 3, 60) is True
    state = engine.get_node("node")
    assert state.counter == 0
    assert state.timestamp == 1061.0


def test_rejected_accept_is_charged_and_advances_timestamp(clock: Mock) -> None:
    engine = _build_engine(clock)
    for _ in range(4):
        engine.accept("node", 3, 60)

    clock.return_value = 1030.0
    assert engine.accept("node", 3, 60) is False

    state = engine.get_node("node")
    assert state.counter == 5
    assert state.timestamp == 1030.0


def test_accept_partial_decay_can_still_reject(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.store.write(ThrottleState(id="node", counter=10, timestamp=1000.0))

    clock.return_value = 1061.0

    # 11 - 3 * floor(61 / 60 + 1) = 5
    assert engine.accept("node", 3, 60) is False
    assert engine.get_node("node").counter == 5


def test_no_decay_at_exactly_one_period(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.store.write(ThrottleState(id="node", counter=3, timestamp=1000.0))

    clock.return_value = 1060.0

    assert engine.accept("node", 3, 60) is False
    assert engine.get_node("node").counter == 4


def test_soft_accept_does_not_write_when_rejected(clock: Mock) -> None:
    engine = _build_engine(clock)

    assert engine.soft_accept("node", 2, 60) is True
    assert engine.soft_accept("node", 2, 60) is True
    before = engine.get_node("node")

    clock.return_value = 1010.0
    assert engine.soft_accept("node", 2, 60) is False
    assert engine.soft_accept("node", 2, 60) is False

    assert engine.get_node("node") == before
    assert before == ThrottleState(id="node", counter=2, timestamp=1000.0)


def test_soft_accept_recovers_relative_to_last_accepted_call(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.soft_accept("node", 1, 60)
    assert engine.soft_accept("node", 1, 60) is False

    clock.return_value = 1061.0

    # 2 - 1 * floor(61 / 60 + 1) = 0, kept at 0
    assert engine.soft_accept("node", 1, 60) is True
    assert engine.get_node("node") == ThrottleState(id="node", counter=0, timestamp=1061.0)


def test_soft_accept_exact_decay_to_zero_leaves_room_for_next_call(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.store.write(ThrottleState(id="n", counter=1, timestamp=1000.0))

    clock.return_value = 1061.0

    assert engine.soft_accept("n", 1, 60) is True
    assert engine.get_node("n").counter == 0
    assert engine.soft_accept("n", 1, 60) is True
    assert engine.get_node("n").counter == 1
    assert engine.soft_accept("n", 1, 60) is False


def test_decay_floor_is_one_for_soft_and_zero_for_hard(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.accept("hard", 3, 60)
    engine.soft_accept("soft", 3, 60)

    clock.return_value = 1200.0

    assert engine.accept("hard", 3, 60) is True
    assert engine.soft_accept("soft", 3, 60) is True
    assert engine.get_node("hard").counter == 0
    assert engine.get_node("soft").counter == 1


def test_reset_then_accept_counts_from_zero(clock: Mock) -> None:
    engine = _build_engine(clock)
    for _ in range(5):
        engine.accept("node", 1, 60)

    engine.reset("node")
    assert engine.get_node("node").counter == 0

    assert engine.accept("node", 1, 60) is True
    assert engine.get_node("node").counter == 1


def test_reset_ignores_whitelist(clock: Mock) -> None:
    engine = _build_engine(clock, whitelist=["vip"])
    clock.return_value = 1234.0

    engine.reset("vip")

    assert engine.store.get_or_create("vip") == ThrottleState(id="vip", counter=0, timestamp=1234.0)


def test_get_node_creates_fresh_state_once(clock: Mock) -> None:
    engine = _build_engine(clock)

    first = engine.get_node("fresh")
    clock.return_value = 1005.0
    second = engine.get_node("fresh")

    assert first == second == ThrottleState(id="fresh", counter=0, timestamp=1000.0)
    assert len(engine.store) == 1


def test_whitelisted_identifier_is_always_accepted(clock: Mock) -> None:
    engine = _build_engine(clock, whitelist=["vip"])

    assert all(engine.accept("vip", 1, 60) for _ in range(20))
    assert all(engine.soft_accept("vip", 1, 60) for _ in range(20))
    assert len(engine.store) == 0


def test_uninitialized_whitelist_accepts_everything(clock: Mock) -> None:
    store = InMemoryCounterStore(clock=clock)
    engine = ThrottleEngine(store, clock=clock)

    assert all(engine.accept("anyone", 1, 60) for _ in range(5))
    assert len(store) == 0


def test_identifiers_are_isolated(clock: Mock) -> None:
    engine = _build_engine(clock)

    assert engine.accept("n1", 1, 60) is True
    assert engine.accept("n1", 1, 60) is False
    assert engine.accept("n2", 1, 60) is True


def test_bytes_identifiers_supported(clock: Mock) -> None:
    engine = _build_engine(clock)

    assert engine.accept(b"jid@host", 1, 60) is True
    assert engine.accept(b"jid@host", 1, 60) is False


@pytest.mark.parametrize("max_count", [0, -1, 1.5, True, "3"])
def test_invalid_max_rejected(clock: Mock, max_count) -> None:
    engine = _build_engine(clock)

    with pytest.raises(ValidationAppError) as exc_info:
        engine.accept("node", max_count, 60)
    assert exc_info.value.code == "invalid_max"

    with pytest.raises(ValidationAppError):
        engine.soft_accept("node", max_count, 60)


@pytest.mark.parametrize("period", [0, -5, float("nan"), False, "60"])
def test_invalid_period_rejected(clock: Mock, period) -> None:
    engine = _build_engine(clock)

    with pytest.raises(ValidationAppError) as exc_info:
        engine.accept("node", 3, period)
    assert exc_info.value.code == "invalid_period"


def test_whitelisted_identifier_accepted_for_any_limits(clock: Mock) -> None:
    engine = _build_engine(clock, whitelist=["vip"])

    assert engine.accept("vip", 0, 0) is True
    assert engine.soft_accept("vip", -1, float("nan")) is True
    assert len(engine.store) == 0

    with pytest.raises(ValidationAppError):
        engine.accept("other", 0, 60)


def test_uninitialized_whitelist_skips_limit_validation(clock: Mock) -> None:
    engine = ThrottleEngine(InMemoryCounterStore(clock=clock), clock=clock)

    assert engine.accept("anyone", 0, -1) is True


def test_enforce_raises_when_over_quota(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.enforce("node", 1, 30)

    with pytest.raises(ThrottledAppError) as exc_info:
        engine.enforce("node", 1, 30)

    err = exc_info.value
    assert err.code == "throttled"
    assert err.details == {"limit": 1, "period_seconds": 30, "retry_after": 30}


def test_enforce_soft_mode_does_not_charge_rejections(clock: Mock) -> None:
    engine = _build_engine(clock)
    engine.enforce("node", 1, 30, soft=True)

    with pytest.raises(ThrottledAppError):
        engine.enforce("node", 1, 30, soft=True)

    assert engine.get_node("node").counter == 1


@pytest.mark.parametrize(
    ("counter", "elapsed", "floor", "expected"),
    [
        (4, 10.0, 0, 4),
        (4, 61.0, 0, 0),
        (4, 61.0, 1, 1),
        (6, 61.0, 1, 0),
        (6, 61.0, 0, 0),
        (20, 130.0, 0, 11),
    ],
)
def test_decayed_counter(counter: int, elapsed: float, floor: int, expected: int) -> None:
    assert decayed_counter(counter, 3, elapsed, 60, floor=floor) == expected
