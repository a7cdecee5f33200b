"""
Tests for weighted performance measures and boosting reweighting.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest
from conftest import ColumnRuleModel

from meta_learners.core import DataError
from meta_learners.data import ExampleSet
from meta_learners.ensemble import (
    ContingencyMatrix,
    SDReweightMeasures,
    WeightedPerformanceMeasures,
    apply_with_weights,
)


def _predicted(labels, predictions, weights=None, classes=("A", "B")):
    n = len(labels)
    example_set = ExampleSet(
        features=pd.DataFrame({"x": np.arange(n, dtype=float)}),
        labels=np.asarray(labels),
        classes=list(classes),
        weights=None if weights is None else np.asarray(weights, dtype=float),
    )
    example_set.set_predictions(np.asarray(predictions))
    return example_set


class TestWeightedPerformanceMeasures:
    """Joint distribution of predictions and labels."""

    def test_contingency_matrix_of_rule(self, ten_row_set):
        """The rule x >= 4 yields [[4, 2], [0, 4]] / 10."""
        ten_row_set.ensure_weights()
        predicted = apply_with_weights(ColumnRuleModel("x", 4.0), ten_row_set)

        cm = WeightedPerformanceMeasures(predicted).contingency_matrix()

        np.testing.assert_allclose(cm.matrix, [[0.4, 0.2], [0.0, 0.4]])
        assert cm.error_rate() == pytest.approx(0.2)

    def test_diagonal_matches_weighted_hits(self):
        """Diagonal entries times the total weight equal the weighted hits."""
        predicted = _predicted([0, 0, 1, 1, 1], [0, 1, 1, 1, 0], weights=[2, 1, 1, 3, 1])
        wp = WeightedPerformanceMeasures(predicted)
        cm = wp.contingency_matrix()

        assert wp.total_weight == pytest.approx(8.0)
        assert cm.matrix[0, 0] * wp.total_weight == pytest.approx(2.0)
        assert cm.matrix[1, 1] * wp.total_weight == pytest.approx(4.0)

    def test_marginals(self, noisy_predicted_set):
        """Label and prediction marginals of the joint distribution."""
        wp = WeightedPerformanceMeasures(noisy_predicted_set)

        np.testing.assert_allclose(wp.label_priors(), [0.6, 0.4])
        assert wp.probability_label(1) == pytest.approx(0.4)
        assert wp.probability_prediction(0) == pytest.approx(0.4)
        assert wp.probability(1, 0) == pytest.approx(0.1)
        assert wp.number_of_non_empty_classes() == 2

    def test_covered_examples_are_unweighted_counts(self):
        """Cover counts ignore the weights."""
        predicted = _predicted([0, 0, 1, 1, 1], [0, 1, 1, 1, 0], weights=[2, 1, 1, 3, 1])
        wp = WeightedPerformanceMeasures(predicted)

        np.testing.assert_array_equal(wp.covered_examples_for_prediction(0), [1, 1])
        np.testing.assert_array_equal(wp.covered_examples_for_prediction(1), [1, 2])
        np.testing.assert_array_equal(wp.covered_examples_for_prediction(7), [0, 0])

    def test_invalid_rows_are_removed(self):
        """Out-of-range labels or predictions lose their weight and are reset to 0."""
        predicted = _predicted([0, 1, 5, 1], [0, 1, 1, -1], weights=[1, 1, 1, 1])
        wp = WeightedPerformanceMeasures(predicted)

        np.testing.assert_array_equal(predicted.weights, [1, 1, 0, 0])
        np.testing.assert_array_equal(predicted.labels, [0, 1, 0, 0])
        np.testing.assert_array_equal(predicted.predictions, [0, 1, 0, 0])
        assert wp.total_weight == pytest.approx(2.0)
        assert wp.probability(0, 0) == pytest.approx(0.5)

    def test_illegal_weights_count_as_zero(self, logged_warnings):
        """NaN and negative weights are zeroed instead of spoiling the distribution."""
        predicted = _predicted(
            [0, 1, 1, 0, 1], [0, 1, 0, 0, 1], weights=[1.0, np.nan, 1.0, 2.0, -3.0]
        )
        wp = WeightedPerformanceMeasures(predicted)

        assert wp.total_weight == pytest.approx(4.0)
        assert wp.contingency_matrix().matrix.sum() == pytest.approx(1.0)
        assert wp.probability(1, 0) == pytest.approx(0.25)
        assert wp.probability(1, 1) == 0.0
        np.testing.assert_array_equal(predicted.weights, [1.0, 0.0, 1.0, 2.0, 0.0])
        assert any("illegal weight" in message for message in logged_warnings)

    def test_zero_total_weight_gives_uniform_distribution(self):
        """Explained example sets fall back to a uniform joint distribution."""
        predicted = _predicted([0, 1, 1], [0, 1, 0], weights=[0, 0, 0])
        wp = WeightedPerformanceMeasures(predicted)

        assert wp.probability(0, 0) == pytest.approx(0.25)
        np.testing.assert_allclose(wp.label_priors(), [0.5, 0.5])

    def test_missing_predictions_rejected(self, ten_row_set):
        """Measures need predictions."""
        with pytest.raises(DataError):
            WeightedPerformanceMeasures(ten_row_set)

    def test_pn_ratios_match_matrix(self, noisy_predicted_set):
        """Odds update factors come from the contingency matrix."""
        wp = WeightedPerformanceMeasures(noisy_predicted_set)
        cm = wp.contingency_matrix()

        np.testing.assert_allclose(wp.pn_ratios(1), cm.lift_ratios_for_prediction(1))
        assert wp.lift(0, 1) == pytest.approx(cm.lift(0, 1))


class TestReweightExamples:
    """The shared boosting reweighting step."""

    def test_marginal_skews_balance_covered_subsets(self, noisy_predicted_set):
        """With marginal skews every covered subset ends up 50/50."""
        cm = WeightedPerformanceMeasures(noisy_predicted_set).contingency_matrix()
        WeightedPerformanceMeasures.reweight_examples(noisy_predicted_set, cm, allow_marginal_skews=True)

        weights = noisy_predicted_set.weights
        labels = noisy_predicted_set.labels
        predictions = noisy_predicted_set.predictions
        for p in (0, 1):
            subset = predictions == p
            assert weights[subset & (labels == 0)].sum() == pytest.approx(
                weights[subset & (labels == 1)].sum()
            )

    def test_without_marginal_skews_marginals_are_kept(self, noisy_predicted_set):
        """Dividing by lift keeps label and prediction marginals fixed."""
        cm = WeightedPerformanceMeasures(noisy_predicted_set).contingency_matrix()
        total = WeightedPerformanceMeasures.reweight_examples(
            noisy_predicted_set, cm, allow_marginal_skews=False
        )

        weights = noisy_predicted_set.weights
        assert total == pytest.approx(10.0)
        assert weights[noisy_predicted_set.labels == 0].sum() == pytest.approx(6.0)
        assert weights[noisy_predicted_set.predictions == 1].sum() == pytest.approx(6.0)

    def test_perfect_model_explains_everything(self):
        """A diagonal matrix zeroes every weight."""
        predicted = _predicted([0, 0, 1, 1], [0, 0, 1, 1], weights=[1, 1, 1, 1])
        cm = WeightedPerformanceMeasures(predicted).contingency_matrix()

        total = WeightedPerformanceMeasures.reweight_examples(predicted, cm, allow_marginal_skews=True)

        assert total == 0.0
        np.testing.assert_array_equal(predicted.weights, np.zeros(4))

    def test_non_applicable_rule_leaves_weight_unchanged(self):
        """Rows hitting a NaN lift keep their weight and count towards the total."""
        cm = ContingencyMatrix([[2, 0], [2, 0]])
        predicted = _predicted([0, 1], [1, 0], weights=[1.0, 1.0])

        total = WeightedPerformanceMeasures.reweight_examples(predicted, cm, allow_marginal_skews=False)

        assert predicted.weights[0] == 1.0
        assert total == pytest.approx(2.0)

    def test_illegal_weights_are_reset(self, noisy_predicted_set):
        """NaN, infinite and negative weights become 0."""
        noisy_predicted_set.weights[:3] = [np.nan, np.inf, -1.0]
        cm = ContingencyMatrix([[3, 3], [1, 3]])

        WeightedPerformanceMeasures.reweight_examples(noisy_predicted_set, cm, allow_marginal_skews=True)

        np.testing.assert_array_equal(noisy_predicted_set.weights[:3], [0.0, 0.0, 0.0])

    def test_zero_weight_rows_stay_zero(self, noisy_predicted_set):
        """Rows with zero weight are skipped."""
        noisy_predicted_set.weights[4] = 0.0
        cm = ContingencyMatrix([[3, 3], [1, 3]])

        WeightedPerformanceMeasures.reweight_examples(noisy_predicted_set, cm, allow_marginal_skews=False)

        assert noisy_predicted_set.weights[4] == 0.0

    def test_requires_weights(self):
        """Reweighting an unweighted set is an error."""
        predicted = _predicted([0, 1], [0, 1])
        with pytest.raises(DataError):
            WeightedPerformanceMeasures.reweight_examples(
                predicted, ContingencyMatrix([[1, 0], [0, 1]]), allow_marginal_skews=True
            )


class TestSDReweightMeasures:
    """Subgroup-discovery reweighting of covered positives."""

    def test_additive_reweighting(self, noisy_predicted_set):
        """Covered positives get initial / (1 + k)."""
        wp = SDReweightMeasures(noisy_predicted_set, additive=True)
        initial = noisy_predicted_set.weights.copy()
        times_covered = np.zeros(10, dtype=np.int64)

        total = wp.reweight_examples(noisy_predicted_set, 0, 0, initial, times_covered)

        np.testing.assert_allclose(noisy_predicted_set.weights[:3], [0.5, 0.5, 0.5])
        np.testing.assert_array_equal(times_covered[:4], [1, 1, 1, 0])
        assert total == pytest.approx(8.5)

        total = wp.reweight_examples(noisy_predicted_set, 0, 0, initial, times_covered)
        np.testing.assert_allclose(noisy_predicted_set.weights[:3], [1 / 3, 1 / 3, 1 / 3])
        assert total == pytest.approx(8.0)

    def test_multiplicative_reweighting(self, noisy_predicted_set):
        """Covered positives are multiplied by gamma."""
        wp = SDReweightMeasures(noisy_predicted_set, additive=False, gamma=0.9)

        total = wp.reweight_examples(noisy_predicted_set, 0, 0)

        np.testing.assert_allclose(noisy_predicted_set.weights[:3], [0.9, 0.9, 0.9])
        assert noisy_predicted_set.weights[3] == 1.0
        assert total == pytest.approx(9.7)

    def test_additive_requires_state(self, noisy_predicted_set):
        """Additive mode needs initial weights and cover counts."""
        wp = SDReweightMeasures(noisy_predicted_set, additive=True)
        with pytest.raises(DataError):
            wp.reweight_examples(noisy_predicted_set, 0, 0)
