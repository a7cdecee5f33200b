"""Pytest configuration and fixtures."""

import logging

import numpy as np
import pandas as pd
import pytest

from meta_learners.core.config import reset_config
from meta_learners.data import ExampleSet
from meta_learners.learners import predicted_copy


# ==================== Stub learners ====================


class ColumnRuleModel:
    """Predicts class 1 where ``column >= threshold``, class 0 elsewhere."""

    def __init__(self, column: str, threshold: float):
        self.column = column
        self.threshold = threshold
        self.name = f"{column} >= {threshold}"

    def apply(self, example_set):
        values = example_set.features[self.column].to_numpy()
        predictions = (values >= self.threshold).astype(np.int64)
        confidences = np.eye(2)[predictions]
        return predicted_copy(example_set, predictions, confidences)


class ColumnRuleLearner:
    """Always returns the same rule; records the weights it was trained on."""

    def __init__(self, column: str = "x", threshold: float = 4.0):
        self.column = column
        self.threshold = threshold
        self.seen_weights = []

    def train(self, example_set):
        self.seen_weights.append(None if example_set.weights is None else example_set.weights.copy())
        return ColumnRuleModel(self.column, self.threshold)


class ConstantModel:
    """Predicts one class for every row."""

    def __init__(self, class_index: int):
        self.class_index = class_index

    def apply(self, example_set):
        n = len(example_set)
        predictions = np.full(n, self.class_index, dtype=np.int64)
        confidences = np.zeros((n, example_set.number_of_classes))
        confidences[:, self.class_index] = 1.0
        return predicted_copy(example_set, predictions, confidences)


class MajorityLearner:
    """Predicts the class with the highest total weight (lowest index on ties)."""

    def train(self, example_set):
        return ConstantModel(int(np.argmax(example_set.class_weights())))


class ConstantLearner:
    def __init__(self, class_index: int = 0):
        self.class_index = class_index

    def train(self, example_set):
        return ConstantModel(self.class_index)


class FailingLearner:
    """Succeeds ``successes`` times, then raises."""

    def __init__(self, successes: int = 0):
        self.successes = successes
        self.calls = 0

    def train(self, example_set):
        self.calls += 1
        if self.calls > self.successes:
            raise RuntimeError("base learner exploded")
        return ColumnRuleModel("x", 4.0)


# ==================== Example sets ====================


@pytest.fixture(autouse=True)
def fresh_config():
    """Isolate tests from each other's configuration."""
    reset_config()
    yield
    reset_config()


class _ListHandler(logging.Handler):
    def __init__(self, messages):
        super().__init__(level=logging.WARNING)
        self.messages = messages

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def logged_warnings():
    """Warnings emitted through the package logger during the test."""
    messages = []
    handler = _ListHandler(messages)
    package_logger = logging.getLogger("meta_learners")
    package_logger.addHandler(handler)
    yield messages
    package_logger.removeHandler(handler)


@pytest.fixture
def ten_row_set():
    """Two classes, 6 x A followed by 4 x B, feature x = 0..9, no weights."""
    features = pd.DataFrame({"x": np.arange(10, dtype=float)})
    labels = np.array([0] * 6 + [1] * 4)
    return ExampleSet(features=features, labels=labels, classes=["A", "B"])


@pytest.fixture
def balanced_set():
    """Two classes with 5 rows each."""
    features = pd.DataFrame({"x": np.arange(10, dtype=float)})
    labels = np.array([0, 1] * 5)
    return ExampleSet(features=features, labels=labels, classes=["A", "B"])


@pytest.fixture
def noisy_predicted_set():
    """Predicted set whose contingency matrix has no empty cell: [[3, 3], [1, 3]]."""
    features = pd.DataFrame({"x": np.arange(10, dtype=float)})
    labels = np.array([0, 0, 0, 1, 0, 0, 1, 1, 1, 0])
    predictions = np.array([0, 0, 0, 0, 1, 1, 1, 1, 1, 1])
    example_set = ExampleSet(
        features=features, labels=labels, classes=["A", "B"], weights=np.ones(10)
    )
    example_set.set_predictions(predictions)
    return example_set


@pytest.fixture
def sample_binary_data():
    """Generate a separable-ish binary classification example set."""
    np.random.seed(42)
    n_samples = 300

    x1 = np.random.randn(n_samples)
    x2 = np.random.randn(n_samples)
    target = np.where(x1 + 0.5 * x2 > 0, "yes", "no")

    df = pd.DataFrame({"feature_1": x1, "feature_2": x2, "target": target})
    return ExampleSet.from_frame(df, label_column="target")


@pytest.fixture
def sample_multiclass_data():
    """Three well separated classes along feature_1."""
    np.random.seed(42)
    n_per_class = 60

    centers = {"low": -5.0, "mid": 0.0, "high": 5.0}
    frames = []
    for name, center in centers.items():
        frames.append(
            pd.DataFrame(
                {
                    "feature_1": center + np.random.randn(n_per_class) * 0.5,
                    "feature_2": np.random.randn(n_per_class),
                    "target": name,
                }
            )
        )
    df = pd.concat(frames, ignore_index=True)
    return ExampleSet.from_frame(df, label_column="target", classes=["low", "mid", "high"])
