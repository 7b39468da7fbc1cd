"""Location and device fraud rules."""

from typing import Any

from src.domains.behavior.models import UserBehaviorProfile

from ..models import RuleResult, RuleType, Transaction, TransactionFeatures
from .base import RuleEvaluator


class LocationCheckEvaluator(RuleEvaluator):
    """Triggers when the transaction comes from a country or city outside the user's usual set."""

    rule_type = RuleType.LOCATION_CHECK

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        country = transaction.location_country
        city = transaction.location_city
        amount = transaction.amount_float

        novel_country = bool(
            country and profile.usual_countries and country not in profile.usual_countries
        )
        novel_city = bool(city and profile.usual_cities and city not in profile.usual_cities)

        if cond.different_country:
            fired = novel_country
        else:
            fired = (cond.check_country and novel_country) or (cond.check_city and novel_city)

        if not fired or amount < cond.min_amount:
            return self._not_triggered(rule)

        if novel_country:
            details = f"Transaction from unusual country {country}"
        else:
            details = f"Transaction from unusual city {city}"
        if cond.min_amount:
            details += f" with amount ${amount:,.2f} >= ${cond.min_amount:,.2f}"

        return self._triggered(
            rule,
            details=details,
            evidence={
                "country": country,
                "city": city,
                "usual_countries": list(profile.usual_countries),
            },
        )


class DeviceCheckEvaluator(RuleEvaluator):
    """Triggers when the transaction comes from a previously unseen device."""

    rule_type = RuleType.DEVICE_CHECK

    def evaluate(
        self,
        rule: Any,
        transaction: Transaction,
        profile: UserBehaviorProfile,
        features: TransactionFeatures,
    ) -> RuleResult:
        cond = rule.conditions
        device = transaction.device_fingerprint
        if not cond.new_device or not device or not profile.known_devices:
            return self._not_triggered(rule)
        if device in profile.known_devices:
            return self._not_triggered(rule)
        if transaction.amount_float < cond.min_amount:
            return self._not_triggered(rule)

        return self._triggered(
            rule,
            details="Transaction from previously unseen device",
            evidence={"device_fingerprint": device, "known_devices": len(profile.known_devices)},
        )
