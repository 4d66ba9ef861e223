import logging
from decimal import Decimal, InvalidOperation

import requests
from django.conf import settings

from apps.audit.services import record_audit
from apps.common.money import default_exchange_rate, round_rate, to_decimal
from apps.shop.models import SettingKey, SystemSetting

logger = logging.getLogger(__name__)


class LiveRateUnavailable(Exception):
    pass


def get_exchange_rate() -> Decimal:
    setting = SystemSetting.objects.filter(key=SettingKey.EXCHANGE_RATE).first()
    if setting is None:
        return default_exchange_rate()
    try:
        rate = round_rate(setting.value)
    except InvalidOperation:
        logger.error("Stored exchange rate %r is not a number, using default", setting.value)
        return default_exchange_rate()
    return rate if rate > 0 else default_exchange_rate()


def set_exchange_rate(*, rate, user=None, source="manual") -> Decimal:
    rate = round_rate(rate)
    if rate <= 0:
        raise ValueError("exchange rate must be greater than 0")
    previous = get_exchange_rate()
    SystemSetting.objects.update_or_create(
        key=SettingKey.EXCHANGE_RATE,
        defaults={"value": str(rate), "updated_by": user},
    )
    logger.info("Exchange rate changed from %s to %s (%s)", previous, rate, source)
    record_audit(
        actor=user,
        action="settings.exchange_rate.update",
        entity_type="system_setting",
        entity_id=SettingKey.EXCHANGE_RATE,
        details={"previous": str(previous), "rate": str(rate), "source": source},
    )
    return rate


def fetch_live_rate():
    """Ask the public rates API for USD->AFN and add the shop's margin.

    Returns ``(market_rate, adjusted_rate)``. Nothing is saved.
    """
    try:
        response = requests.get(settings.POS_LIVE_RATE_URL, timeout=settings.POS_LIVE_RATE_TIMEOUT_SECONDS)
        response.raise_for_status()
        payload = response.json()
    except (requests.RequestException, ValueError) as exc:
        logger.error("Live exchange rate fetch failed: %s", exc)
        raise LiveRateUnavailable("Could not reach the exchange rate service.") from exc

    market_rate = (payload.get("rates") or {}).get("AFN")
    if not market_rate:
        logger.error("Live exchange rate response has no AFN rate")
        raise LiveRateUnavailable("Could not retrieve AFN rate.")

    market_rate = round_rate(to_decimal(market_rate))
    adjusted_rate = round_rate(market_rate + to_decimal(settings.POS_LIVE_RATE_MARGIN))
    return market_rate, adjusted_rate
