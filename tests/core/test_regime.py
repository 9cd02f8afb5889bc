"""Tests for market regime classification."""

import pytest
from pydantic import ValidationError

from cryptoagency.core.regime import MarketConditions, MarketRegime, RegimeType, classify


@pytest.mark.parametrize("conditions,expected", [
    ({"sentiment": 0.8, "momentum": "bullish", "volatility": "high"}, RegimeType.EUPHORIA),
    ({"sentiment": -0.8, "momentum": "bearish", "volume": "high"}, RegimeType.DESPAIR),
    ({"sentiment": 0.5, "momentum": "bullish"}, RegimeType.BULL),
    ({"sentiment": -0.5, "momentum": "bearish"}, RegimeType.BEAR),
    ({"sentiment": 0.1, "volatility": "low", "volume": "low"}, RegimeType.ACCUMULATION),
    ({"sentiment": -0.1, "volatility": "low", "volume": "low"}, RegimeType.DISTRIBUTION),
    ({"sentiment": 0.5, "momentum": "neutral"}, RegimeType.CRAB),
])
def test_classify(conditions, expected):
    regime, _ = classify(MarketConditions(**conditions))
    assert regime == expected


def test_euphoria_takes_precedence_over_bull():
    regime, confidence = classify(MarketConditions(sentiment=0.9, momentum="bullish", volatility="high"))
    assert regime == RegimeType.EUPHORIA
    assert confidence == 0.9


def test_sentiment_bounds():
    with pytest.raises(ValidationError):
        MarketConditions(sentiment=1.5)


@pytest.mark.parametrize("field,value", [
    ("volatility", "bogus"),
    ("volume", "extreme"),
    ("momentum", "sideways"),
    ("news_flow", "silent"),
    ("institutional_activity", "frantic"),
])
def test_unknown_condition_levels_rejected(field, value):
    with pytest.raises(ValidationError):
        MarketConditions(**{field: value})


def test_rejected_update_keeps_previous_conditions():
    regime = MarketRegime()
    regime.update_conditions(sentiment=0.5, momentum="bullish")

    with pytest.raises(ValidationError):
        regime.update_conditions(volatility="bogus")
    assert regime.current_regime == RegimeType.BULL
    assert regime.conditions().volatility == "medium"


def test_starts_in_crab():
    regime = MarketRegime()
    assert regime.current_regime == RegimeType.CRAB
    assert regime.confidence == 0.5
    assert regime.history() == []


def test_update_records_transition():
    regime = MarketRegime()
    assert regime.update_conditions(sentiment=0.5, momentum="bullish") == RegimeType.BULL

    history = regime.history()
    assert len(history) == 1
    assert history[0].regime == RegimeType.CRAB
    assert history[0].duration_seconds >= 0
    assert regime.confidence == 0.8
    assert regime.conditions().momentum == "bullish"


def test_same_regime_not_recorded():
    regime = MarketRegime()
    regime.update_conditions(sentiment=0.5, momentum="bullish")
    regime.update_conditions(sentiment=0.6)
    assert len(regime.history()) == 1


def test_predict_next_uniform_without_transitions():
    predictions = MarketRegime().predict_next()
    assert len(predictions) == 7
    assert all(p == pytest.approx(1 / 7) for _, p in predictions)


def test_predict_next_from_transitions():
    regime = MarketRegime()
    for _ in range(2):
        regime.update_conditions(sentiment=0.5, momentum="bullish")
        regime.update_conditions(sentiment=0.0, momentum="neutral")

    # history: crab, bull, crab, bull; now crab again
    assert regime.current_regime == RegimeType.CRAB
    top, probability = regime.predict_next()[0]
    assert top == RegimeType.BULL
    assert probability == pytest.approx(2 / 3)
