"""
Tests for bagging.
"""

from __future__ import annotations

import numpy as np
import pytest
from conftest import ColumnRuleLearner
from sklearn.tree import DecisionTreeClassifier

from meta_learners.core import ConfigurationError
from meta_learners.ensemble import Bagging, Combination
from meta_learners.learners import SklearnLearner


class TestBagging:
    """Sampling and combination of bagged models."""

    def test_one_model_per_iteration(self, ten_row_set):
        """Every iteration adds a member with weight 1."""
        model = Bagging(ColumnRuleLearner(), {"iterations": 5, "random_seed": 0}).train(ten_row_set)

        assert model.model_count() == 5
        assert all(model.get_weight(i) == 1.0 for i in range(5))
        assert model.combination is Combination.AVERAGING

    def test_identical_members_reproduce_the_rule(self, ten_row_set):
        """Averaging identical one-hot models gives the model itself."""
        model = Bagging(ColumnRuleLearner("x", 4.0), {"iterations": 3, "random_seed": 0}).train(ten_row_set)
        predicted = model.predict(ten_row_set)

        np.testing.assert_array_equal(predicted.predictions, [0, 0, 0, 0, 1, 1, 1, 1, 1, 1])
        np.testing.assert_allclose(predicted.confidences[0], [1.0, 0.0])

    def test_voting_mode(self, ten_row_set):
        """Without confidence averaging every member casts one vote."""
        model = Bagging(
            ColumnRuleLearner("x", 4.0), {"iterations": 3, "average_confidences": False}
        ).train(ten_row_set)
        predicted = model.predict(ten_row_set)

        assert model.combination is Combination.ADDITIVE_WEIGHTED
        np.testing.assert_array_equal(predicted.predictions, [0, 0, 0, 0, 1, 1, 1, 1, 1, 1])

    def test_sample_sizes(self, ten_row_set):
        """Each base model sees round(sample_ratio * n) rows."""
        sizes = []

        class SizeRecordingLearner(ColumnRuleLearner):
            def train(self, example_set):
                sizes.append(len(example_set))
                return super().train(example_set)

        Bagging(SizeRecordingLearner(), {"iterations": 4, "sample_ratio": 0.5, "bootstrap": False}).train(
            ten_row_set
        )
        assert sizes == [5, 5, 5, 5]

    def test_seed_makes_training_reproducible(self, sample_binary_data):
        """Two runs with the same seed build the same ensemble."""
        params = {"iterations": 5, "random_seed": 11}
        learner = SklearnLearner(DecisionTreeClassifier(max_depth=2, random_state=0))

        first = Bagging(learner, params).train(sample_binary_data).predict(sample_binary_data)
        second = Bagging(learner, params).train(sample_binary_data).predict(sample_binary_data)

        np.testing.assert_array_equal(first.confidences, second.confidences)

    def test_stumps_fit_training_data(self, sample_binary_data):
        """Bagged trees classify most training examples correctly."""
        learner = SklearnLearner(DecisionTreeClassifier(max_depth=3, random_state=0))
        model = Bagging(learner, {"iterations": 5, "random_seed": 3}).train(sample_binary_data)
        predicted = model.predict(sample_binary_data)

        assert np.mean(predicted.predictions == sample_binary_data.labels) > 0.8

    def test_invalid_sample_ratio_rejected(self):
        """Sample ratio must be in (0, 1]."""
        with pytest.raises(ConfigurationError):
            Bagging(ColumnRuleLearner(), {"sample_ratio": 1.5})
