"""TradingConfig: явно передаваемая конфигурация торгового движка.

Движок получает объект при создании и заменяет его только через merge():
частичный патч (snake_case или camelCase ключи) валидируется целиком,
при ошибке текущая конфигурация остаётся нетронутой.
"""

from __future__ import annotations

from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from config.settings import TradingDefaults


class TradingConfig(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    enabled: bool = False
    min_mcap_growth: float = 5.0
    min_mcap_growth_enabled: bool = True
    min_holders: int = Field(20, ge=0)
    min_holders_enabled: bool = True
    min_volume: float = Field(1_000.0, ge=0)
    min_volume_enabled: bool = True
    buy_amount_sol: float = Field(0.1, gt=0)
    profit_target_percent: float = Field(50.0, gt=0)
    second_profit_target_percent: float = Field(100.0, gt=0)
    stop_loss_percent: float = Field(-10.0, lt=0)
    max_positions: int = Field(5, ge=0)
    min_mcap: float = Field(3_000.0, ge=0)

    @model_validator(mode="after")
    def _check_targets(self) -> "TradingConfig":
        if self.second_profit_target_percent <= self.profit_target_percent:
            raise ValueError("second_profit_target_percent должен быть больше profit_target_percent")
        return self

    @classmethod
    def from_defaults(cls, defaults: TradingDefaults) -> "TradingConfig":
        return cls.model_validate(defaults.model_dump())

    @property
    def enabled_filter_count(self) -> int:
        return sum((self.min_mcap_growth_enabled, self.min_holders_enabled, self.min_volume_enabled))

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def _field_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for name, info in TradingConfig.model_fields.items():
        lookup[name] = name
        if info.alias:
            lookup[info.alias] = name
    return lookup


_FIELDS = _field_lookup()


def merge(config: TradingConfig, patch: Mapping[str, Any]) -> TradingConfig:
    """Возвращает новую конфигурацию = config + patch (ValueError на неизвестные ключи)."""

    unknown = sorted(key for key in patch if key not in _FIELDS)
    if unknown:
        raise ValueError(f"Неизвестные параметры конфигурации: {', '.join(unknown)}")
    data = config.model_dump()
    data.update({_FIELDS[key]: value for key, value in patch.items()})
    return TradingConfig.model_validate(data)


__all__ = ["TradingConfig", "merge"]
