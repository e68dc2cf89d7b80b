"""Business configuration read from ``admin_settings``.

Raw JSON values are parsed once at this boundary into typed variants and
frozen into a ``LedgerConfig`` snapshot. Components receive the snapshot;
none of them touch the settings table directly.
"""

import time
from dataclasses import dataclass, field, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional, Union

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.logging import get_logger
from libs.db.unit_of_work import unit_of_work
from services.ledger_service.errors import InvalidSetting
from services.ledger_service.models import AdminSetting, WithdrawalKind
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MAX_COMMISSION_LEVELS = 3


# ---------------------------------------------------------------------------
# Tagged values
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BoolValue:
    value: bool


@dataclass(frozen=True)
class DecimalValue:
    value: Decimal


@dataclass(frozen=True)
class RateListValue:
    value: tuple[Decimal, ...]


SettingValue = Union[BoolValue, DecimalValue, RateListValue]


def _parse_bool(raw: Any) -> BoolValue:
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, (int, float)) and raw in (0, 1):
        return BoolValue(bool(raw))
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in ("true", "1", "yes", "on"):
            return BoolValue(True)
        if lowered in ("false", "0", "no", "off"):
            return BoolValue(False)
    raise ValueError(f"not a boolean: {raw!r}")


def _to_decimal(raw: Any) -> Decimal:
    if isinstance(raw, bool) or raw is None:
        raise ValueError(f"not a number: {raw!r}")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a number: {raw!r}") from exc
    if not value.is_finite():
        raise ValueError(f"not a finite number: {raw!r}")
    return value


def _decimal_parser(
    *,
    minimum: Decimal = Decimal("0"),
    maximum: Optional[Decimal] = None,
    exclusive_minimum: bool = False,
) -> Callable[[Any], DecimalValue]:
    def parse(raw: Any) -> DecimalValue:
        value = _to_decimal(raw)
        if value < minimum or (exclusive_minimum and value == minimum):
            raise ValueError(f"{value} is below the allowed minimum")
        if maximum is not None and value > maximum:
            raise ValueError(f"{value} is above the allowed maximum")
        return DecimalValue(value)

    return parse


def _parse_rate_list(raw: Any) -> RateListValue:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValueError(f"not a non-empty list of rates: {raw!r}")
    rates = tuple(_to_decimal(item) for item in raw[:MAX_COMMISSION_LEVELS])
    if any(rate < 0 or rate > 1 for rate in rates):
        raise ValueError("commission rates must be between 0 and 1")
    return RateListValue(rates)


@dataclass(frozen=True)
class SettingDefinition:
    key: str
    attr: str
    parse: Callable[[Any], SettingValue]
    description: str


SETTING_DEFINITIONS: dict[str, SettingDefinition] = {
    definition.key: definition
    for definition in (
        SettingDefinition(
            "monetization_enabled",
            "monetization_enabled",
            _parse_bool,
            "Master switch for earnings accrual and withdrawals",
        ),
        SettingDefinition(
            "token_to_usd_rate",
            "token_to_usd_rate",
            _decimal_parser(exclusive_minimum=True),
            "USD value of one token",
        ),
        SettingDefinition(
            "default_earnings_per_token",
            "default_earnings_per_token",
            _decimal_parser(),
            "Creator earnings per token when a model sets no rate",
        ),
        SettingDefinition(
            "minimum_withdrawal_amount",
            "min_creator_withdrawal",
            _decimal_parser(),
            "Minimum creator-earnings withdrawal (USD)",
        ),
        SettingDefinition(
            "minimum_bonus_withdrawal_amount",
            "min_bonus_withdrawal",
            _decimal_parser(),
            "Minimum bonus-wallet withdrawal (USD)",
        ),
        SettingDefinition(
            "minimum_token_withdrawal_amount",
            "min_token_withdrawal",
            _decimal_parser(),
            "Minimum token withdrawal (USD)",
        ),
        SettingDefinition(
            "withdrawal_processing_fee_percent",
            "withdrawal_fee_percent",
            _decimal_parser(maximum=Decimal("100")),
            "Percentage withheld from each payout",
        ),
        SettingDefinition(
            "commission_rates",
            "commission_rates",
            _parse_rate_list,
            "Affiliate commission rate per referrer level",
        ),
    )
}


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    monetization_enabled: bool = True
    token_to_usd_rate: Decimal = Decimal("0.01")
    default_earnings_per_token: Decimal = Decimal("0.0001")
    min_creator_withdrawal: Decimal = Decimal("50.00")
    min_bonus_withdrawal: Decimal = Decimal("10.00")
    min_token_withdrawal: Decimal = Decimal("10.00")
    withdrawal_fee_percent: Decimal = Decimal("0")
    commission_rates: tuple[Decimal, ...] = field(
        default=(Decimal("0.50"), Decimal("0.05"), Decimal("0.05"))
    )

    def minimum_for(self, kind: WithdrawalKind) -> Decimal:
        return {
            WithdrawalKind.CREATOR_EARNINGS: self.min_creator_withdrawal,
            WithdrawalKind.BONUS: self.min_bonus_withdrawal,
            WithdrawalKind.TOKENS: self.min_token_withdrawal,
        }[kind]

    def as_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def build_config(raw_values: dict[str, Any]) -> LedgerConfig:
    """Resolve raw ``admin_settings`` values into a snapshot.

    Missing keys keep their defaults; unparseable ones fall back with a warning.
    """
    resolved: dict[str, Any] = {}
    for key, raw in raw_values.items():
        definition = SETTING_DEFINITIONS.get(key)
        if definition is None or raw is None:
            continue
        try:
            resolved[definition.attr] = definition.parse(raw).value
        except ValueError as exc:
            logger.warning(
                "Ignoring invalid admin setting %s=%r (%s); using default", key, raw, exc
            )
    return LedgerConfig(**resolved)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class ConfigProvider:
    """Caches the ``LedgerConfig`` snapshot for a bounded TTL."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds is None:
            ttl_seconds = get_settings().LEDGER_CONFIG_CACHE_TTL_SECONDS
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._snapshot: Optional[LedgerConfig] = None
        self._loaded_at = 0.0

    async def get(self, db: AsyncSession) -> LedgerConfig:
        now = self._clock()
        if self._snapshot is not None and now - self._loaded_at < self.ttl_seconds:
            return self._snapshot

        result = await db.execute(
            select(AdminSetting.key, AdminSetting.value).where(
                AdminSetting.key.in_(SETTING_DEFINITIONS)
            )
        )
        self._snapshot = build_config({key: value for key, value in result.all()})
        self._loaded_at = now
        return self._snapshot

    def invalidate(self) -> None:
        self._snapshot = None

    async def list_settings(self, db: AsyncSession) -> list[AdminSetting]:
        result = await db.execute(select(AdminSetting).order_by(AdminSetting.key))
        return list(result.scalars().all())

    async def update_setting(
        self,
        db: AsyncSession,
        *,
        key: str,
        value: Any,
        updated_by: str,
    ) -> AdminSetting:
        """Validate and persist one setting, then drop the cached snapshot."""
        definition = SETTING_DEFINITIONS.get(key)
        if definition is None:
            raise InvalidSetting(f"Unknown setting '{key}'")
        try:
            definition.parse(value)
        except ValueError as exc:
            raise InvalidSetting(f"Invalid value for '{key}': {exc}") from exc

        async with unit_of_work(db):
            setting = await db.get(AdminSetting, key)
            if setting is None:
                setting = AdminSetting(key=key, description=definition.description)
                db.add(setting)
            setting.value = value
            setting.updated_by = updated_by
            setting.updated_at = utc_now()

        self.invalidate()
        logger.info("Admin %s updated setting %s=%r", updated_by, key, value)
        return setting


config_provider = ConfigProvider()


def get_config_provider() -> ConfigProvider:
    """FastAPI dependency / default provider for service functions."""
    return config_provider


async def resolve_config(
    db: AsyncSession, config: Optional[LedgerConfig] = None
) -> LedgerConfig:
    return config if config is not None else await get_config_provider().get(db)
