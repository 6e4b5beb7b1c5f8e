import pytest

from bagsscan.models import PositionStatus
from bagsscan.services.trading.config import TradingConfig
from bagsscan.services.trading.signals import (
    ExitAction,
    decide_exit,
    passes_signal_filters,
    profit_percent,
)

CONFIG = TradingConfig(min_mcap_growth=5.0, min_holders=20, min_volume=1_000.0)


def test_all_three_filters_need_any_two():
    assert passes_signal_filters(CONFIG, mcap_growth=6.0, holders=25, volume=0.0)
    assert passes_signal_filters(CONFIG, mcap_growth=0.0, holders=25, volume=5_000.0)
    assert not passes_signal_filters(CONFIG, mcap_growth=6.0, holders=3, volume=10.0)


def test_two_filters_must_both_pass():
    config = CONFIG.model_copy(update={"min_volume_enabled": False})

    assert passes_signal_filters(config, mcap_growth=6.0, holders=25, volume=0.0)
    assert not passes_signal_filters(config, mcap_growth=6.0, holders=3, volume=1e9)


def test_single_filter_must_pass():
    config = CONFIG.model_copy(update={"min_volume_enabled": False, "min_holders_enabled": False})

    assert passes_signal_filters(config, mcap_growth=5.0, holders=0, volume=0.0)
    assert not passes_signal_filters(config, mcap_growth=4.9, holders=1_000, volume=1e9)


def test_no_enabled_filters_never_buys():
    config = CONFIG.model_copy(
        update={"min_volume_enabled": False, "min_holders_enabled": False, "min_mcap_growth_enabled": False}
    )

    assert not passes_signal_filters(config, mcap_growth=1e6, holders=10_000, volume=1e9)


def test_profit_percent():
    assert profit_percent(1.0, 0.85) == pytest.approx(-15.0)
    assert profit_percent(2.0, 3.0) == pytest.approx(50.0)
    assert profit_percent(0.0, 3.0) == 0.0


def test_exit_decisions_follow_status_and_thresholds():
    config = TradingConfig(profit_target_percent=50.0, second_profit_target_percent=100.0, stop_loss_percent=-10.0)

    assert decide_exit(PositionStatus.OPEN, 55.0, config) == ExitAction.TAKE_PROFIT_PARTIAL
    assert decide_exit(PositionStatus.OPEN, 150.0, config) == ExitAction.TAKE_PROFIT_PARTIAL
    assert decide_exit(PositionStatus.PARTIAL, 150.0, config) == ExitAction.TAKE_PROFIT_FINAL
    assert decide_exit(PositionStatus.PARTIAL, 60.0, config) is None
    assert decide_exit(PositionStatus.OPEN, -10.0, config) == ExitAction.STOP_LOSS
    assert decide_exit(PositionStatus.PARTIAL, -25.0, config) == ExitAction.STOP_LOSS
    assert decide_exit(PositionStatus.OPEN, 5.0, config) is None
    assert decide_exit(PositionStatus.SOLD, -50.0, config) is None
    assert decide_exit(PositionStatus.STOPPED, 500.0, config) is None
