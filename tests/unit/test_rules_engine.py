"""Unit tests for the rules engine."""

from datetime import UTC, datetime

import pytest

from src.domains.fraud.models import FactorSource, RuleType, TransactionFeatures
from src.domains.fraud.rule_config import DEFAULT_RULES, load_rules
from src.domains.fraud.rules import EVALUATORS
from src.domains.fraud.rules.base import RuleEvaluator
from src.domains.fraud.rules_engine import RulesEngine
from tests.conftest import make_profile, make_transaction


@pytest.fixture
def engine() -> RulesEngine:
    return RulesEngine()


class _ExplodingEvaluator(RuleEvaluator):
    rule_type = RuleType.MERCHANT_RISK

    def evaluate(self, rule, transaction, profile, features):
        raise RuntimeError("boom")


class TestRulesEngine:
    def test_ordinary_transaction_scores_zero(self, engine):
        result = engine.evaluate(
            make_transaction(), make_profile(), DEFAULT_RULES, TransactionFeatures(window_counts={300: 0, 3600: 0})
        )
        assert result.partial_score == 0.0
        assert result.factors == []
        assert result.warnings == []
        assert len(result.results) == 8

    def test_weights_are_additive_in_configuration_order(self, engine):
        rules = {
            "Night": {"type": "time_pattern", "conditions": {"start_hour": 23, "end_hour": 5}, "weight": 15},
            "Location": {"type": "location_check", "weight": 25},
        }
        txn = make_transaction(
            transaction_time=datetime(2026, 1, 14, 2, 0, tzinfo=UTC), location_country="RO"
        )
        result = engine.evaluate(txn, make_profile(), rules)
        assert [f.identifier for f in result.factors] == ["Night", "Location"]
        assert all(f.source == FactorSource.RULE for f in result.factors)
        assert result.partial_score == 40.0

    def test_inactive_rule_contributes_nothing(self, engine):
        rules = {
            "Location": {"type": "location_check", "weight": 25, "active": False},
        }
        result = engine.evaluate(make_transaction(location_country="RO"), make_profile(), rules)
        assert result.partial_score == 0.0
        assert result.factors == []
        assert result.results == []

    def test_accepts_parsed_rule_set(self, engine):
        rule_set = load_rules({"Location": {"type": "location_check", "weight": 25}})
        result = engine.evaluate(make_transaction(location_country="RO"), make_profile(), rule_set)
        assert result.partial_score == 25.0

    def test_malformed_rule_becomes_warning(self, engine):
        rules = {
            "Broken": {"type": "velocity_check", "weight": 10},
            "Location": {"type": "location_check", "weight": 25},
        }
        result = engine.evaluate(make_transaction(location_country="RO"), make_profile(), rules)
        assert result.partial_score == 25.0
        assert [w.code for w in result.warnings] == ["invalid_rule"]
        assert result.warnings[0].rule_name == "Broken"

    def test_evaluator_failure_becomes_warning(self):
        evaluators = dict(EVALUATORS)
        evaluators[RuleType.MERCHANT_RISK] = _ExplodingEvaluator()
        engine = RulesEngine(evaluators=evaluators)
        rules = {
            "Merchant": {"type": "merchant_risk", "weight": 25},
            "Location": {"type": "location_check", "weight": 25},
        }
        result = engine.evaluate(make_transaction(location_country="RO"), make_profile(), rules)
        assert result.partial_score == 25.0
        assert result.warnings[0].code == "rule_evaluation_failed"
        assert result.warnings[0].rule_name == "Merchant"

    def test_missing_evaluator_becomes_warning(self):
        engine = RulesEngine(evaluators={RuleType.LOCATION_CHECK: EVALUATORS[RuleType.LOCATION_CHECK]})
        rules = {"Merchant": {"type": "merchant_risk", "weight": 25}}
        result = engine.evaluate(make_transaction(), make_profile(), rules)
        assert result.partial_score == 0.0
        assert result.warnings[0].code == "invalid_rule"

    def test_profile_not_mutated(self, engine):
        profile = make_profile()
        before = profile.model_dump()
        engine.evaluate(make_transaction(amount="5000.00", location_country="RO"), profile, DEFAULT_RULES)
        assert profile.model_dump() == before

    def test_new_user_fires_no_profile_relative_rules(self, engine):
        profile = make_profile(
            mean=0.0, std=0.0, count=0, max_transaction_amount=0.0,
            usual_countries=[], usual_cities=[], known_devices=[], frequent_merchants={},
            typical_transaction_times={},
        )
        result = engine.evaluate(
            make_transaction(amount="5000.00", location_country="RO"),
            profile,
            DEFAULT_RULES,
            TransactionFeatures(window_counts={300: 0, 3600: 0}),
        )
        assert result.partial_score == 0.0

    def test_new_user_at_night_fires_night_rule_only(self, engine):
        profile = make_profile(
            mean=0.0, std=0.0, count=0, max_transaction_amount=0.0,
            usual_countries=[], usual_cities=[], known_devices=[], frequent_merchants={},
            typical_transaction_times={},
        )
        result = engine.evaluate(
            make_transaction(amount="50.00", transaction_time=datetime(2026, 1, 14, 2, 0, tzinfo=UTC)),
            profile,
            DEFAULT_RULES,
            TransactionFeatures(window_counts={300: 0, 3600: 0}),
        )
        assert [f.identifier for f in result.factors] == ["Night Transaction"]
        assert result.partial_score == 15.0
