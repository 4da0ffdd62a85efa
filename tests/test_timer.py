"""CountdownTimer 테스트"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from app.services.timer import CountdownTimer


def make_timer(clock, on_tick=None, on_expire=None):
    # 주기 태스크는 사실상 멈춰 두고 tick()을 직접 호출
    return CountdownTimer(on_tick=on_tick, on_expire=on_expire, tick_seconds=3600, clock=clock)


@pytest.mark.asyncio
async def test_tick_decrements_by_elapsed_seconds(fake_clock):
    """경과한 초만큼 남은 시간 차감 및 틱 콜백 호출"""
    on_tick = MagicMock(return_value=None)
    timer = make_timer(fake_clock, on_tick=on_tick)
    timer.start(10)

    fake_clock.advance(1)
    assert await timer.tick() == 9
    on_tick.assert_called_once_with(9)
    timer.stop()


@pytest.mark.asyncio
async def test_tick_reconciles_drift(fake_clock):
    """이벤트 루프 지연 시 실제 경과 시간 기준으로 한 번에 차감"""
    timer = make_timer(fake_clock)
    timer.start(10)

    fake_clock.advance(3.4)
    assert await timer.tick() == 7
    # 1초 미만 나머지는 이월
    fake_clock.advance(0.7)
    assert await timer.tick() == 6
    fake_clock.advance(0.5)
    assert await timer.tick() == 6
    timer.stop()


@pytest.mark.asyncio
async def test_expire_fires_once_under_drift(fake_clock):
    """큰 지연으로 0을 지나쳐도 만료 콜백은 1회만 호출"""
    on_expire = AsyncMock()
    timer = make_timer(fake_clock, on_expire=on_expire)
    timer.start(5)

    fake_clock.advance(12)
    assert await timer.tick() == 0
    fake_clock.advance(5)
    assert await timer.tick() == 0

    on_expire.assert_awaited_once()
    assert timer.remaining == 0
    assert timer.is_running is False
    timer.stop()


@pytest.mark.asyncio
async def test_expire_reports_zero_tick(fake_clock):
    """만료 시 남은 시간 0을 틱 콜백으로 전달"""
    on_tick = MagicMock(return_value=None)
    timer = make_timer(fake_clock, on_tick=on_tick)
    timer.start(2)

    fake_clock.advance(2)
    await timer.tick()

    on_tick.assert_called_once_with(0)
    timer.stop()


@pytest.mark.asyncio
async def test_start_with_zero_expires_on_first_tick(fake_clock):
    """남은 시간 0으로 시작하면 첫 틱에 만료"""
    on_expire = MagicMock(return_value=None)
    timer = make_timer(fake_clock, on_expire=on_expire)
    timer.start(0)

    assert await timer.tick() == 0
    on_expire.assert_called_once()
    timer.stop()


@pytest.mark.asyncio
async def test_stop_is_idempotent_and_freezes_remaining(fake_clock):
    """정지 후에는 시간이 흘러도 차감되지 않음, 여러 번 정지해도 안전"""
    on_expire = MagicMock(return_value=None)
    timer = make_timer(fake_clock, on_expire=on_expire)
    timer.start(10)
    fake_clock.advance(4)
    await timer.tick()

    timer.stop()
    timer.stop()
    fake_clock.advance(100)

    assert await timer.tick() == 6
    assert timer.is_running is False
    on_expire.assert_not_called()


@pytest.mark.asyncio
async def test_start_while_running_is_ignored(fake_clock):
    """실행 중 재시작 요청은 무시"""
    timer = make_timer(fake_clock)
    timer.start(10)
    fake_clock.advance(2)
    await timer.tick()

    timer.start(100)

    assert timer.remaining == 8
    timer.stop()


@pytest.mark.asyncio
async def test_restart_after_expiry_fires_again(fake_clock):
    """정지/재시작 주기마다 만료 콜백은 다시 1회 호출 가능"""
    on_expire = MagicMock(return_value=None)
    timer = make_timer(fake_clock, on_expire=on_expire)

    timer.start(1)
    fake_clock.advance(1)
    await timer.tick()
    timer.start(1)
    fake_clock.advance(1)
    await timer.tick()

    assert on_expire.call_count == 2
    timer.stop()


@pytest.mark.asyncio
async def test_stop_inside_expire_callback(fake_clock):
    """만료 콜백 안에서 stop()을 호출해도 오류 없음"""
    timer = make_timer(fake_clock)

    async def on_expire():
        timer.stop()

    timer._on_expire = on_expire
    timer.start(1)
    fake_clock.advance(1)

    assert await timer.tick() == 0
    assert timer.is_running is False


def test_start_outside_event_loop(fake_clock):
    """이벤트 루프 밖에서도 시작 가능 (태스크 없이 tick으로 구동)"""
    timer = make_timer(fake_clock)
    timer.start(30)

    assert timer.is_running is True
    assert timer.remaining == 30
    timer.stop()
