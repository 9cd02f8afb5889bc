"""Tests for the reputation model."""

import pytest

from cryptoagency.core.reputation import ReputationModel


def test_starts_neutral():
    model = ReputationModel()
    assert model.overall_score() == pytest.approx(50.0)
    assert model.assess_trend() == "stable"
    assert model.history() == []


def test_update_blends_then_decays_everything():
    model = ReputationModel()
    model.update(accuracy=100)

    current = model.current()
    assert current.accuracy == pytest.approx((50 * 0.7 + 100 * 0.3) * 0.95)
    assert current.consistency == pytest.approx(50 * 0.95)
    assert len(model.history()) == 1
    assert model.history()[0].accuracy == 50.0


def test_unknown_metric_rejected():
    model = ReputationModel()
    with pytest.raises(ValueError):
        model.update(charisma=90)
    assert model.history() == []


def test_current_is_a_copy():
    model = ReputationModel()
    snapshot = model.current()
    snapshot.accuracy = 0
    assert model.current().accuracy == 50.0


def test_declining_trend_with_poor_results():
    model = ReputationModel()
    for _ in range(3):
        model.update()
    for _ in range(3):
        model.update(accuracy=0, consistency=0, trustworthiness=0, influence=0)
    assert model.assess_trend() == "declining"


def test_improving_trend_with_strong_results():
    model = ReputationModel()
    for _ in range(3):
        model.update()
    for _ in range(3):
        model.update(
            accuracy=100, consistency=100, responsiveness=100,
            influence=100, trustworthiness=100, expertise=100,
        )
    assert model.assess_trend() == "improving"
