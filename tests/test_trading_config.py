import pytest
from pydantic import ValidationError

from bagsscan.services.trading.config import TradingConfig, merge
from config.settings import TradingDefaults


def test_defaults_are_safe():
    config = TradingConfig.from_defaults(TradingDefaults())

    assert config.enabled is False
    assert config.enabled_filter_count == 3
    assert config.public_dict()["buyAmountSol"] == 0.1


def test_merge_accepts_camel_and_snake_keys():
    base = TradingConfig()

    updated = merge(base, {"buyAmountSol": 0.5, "min_holders": 50, "minVolumeEnabled": False})

    assert updated.buy_amount_sol == 0.5
    assert updated.min_holders == 50
    assert updated.enabled_filter_count == 2
    assert base.buy_amount_sol == 0.1


def test_merge_rejects_unknown_keys():
    with pytest.raises(ValueError, match="leverage"):
        merge(TradingConfig(), {"leverage": 10})


def test_merge_validates_whole_config():
    base = TradingConfig()

    with pytest.raises(ValidationError):
        merge(base, {"stopLossPercent": 5})
    with pytest.raises(ValidationError):
        merge(base, {"secondProfitTargetPercent": 20})
    assert base.stop_loss_percent == -10.0


def test_config_is_immutable():
    config = TradingConfig()

    with pytest.raises(ValidationError):
        config.enabled = True
