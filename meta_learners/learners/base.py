"""
Base-learner capability used by every meta-learner.

A base learner is anything with ``train(example_set) -> Model``; a model is
anything with ``apply(example_set) -> ExampleSet``. ``apply`` returns a new
example set carrying predictions and confidences and leaves its input
untouched.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

import numpy as np
from sklearn.base import clone

from ..core.logger import get_logger
from ..data.example_set import ExampleSet, check_trainable


logger = get_logger(__name__)


@runtime_checkable
class Model(Protocol):
    """A trained model."""

    def apply(self, example_set: ExampleSet) -> ExampleSet: ...


@runtime_checkable
class Learner(Protocol):
    """A trainable base learner."""

    def train(self, example_set: ExampleSet) -> Model: ...


def model_name(model: Any) -> str:
    """Human-readable name of a model for introspection."""
    name = getattr(model, "name", None)
    return name if isinstance(name, str) else type(model).__name__


def predicted_copy(
    example_set: ExampleSet,
    predictions: np.ndarray,
    confidences: np.ndarray | None,
    classes: list[str] | None = None,
) -> ExampleSet:
    """Return a clone of ``example_set`` with predictions attached.

    ``classes`` replaces the class list of the copy when the model predicts a
    different label than the one of the input, e.g. a binary sub-problem.
    """
    result = example_set.clone()
    if classes is not None:
        result.classes = list(classes)
    result.set_predictions(predictions, confidences)
    return result


class SklearnModel:
    """Wraps a fitted scikit-learn classifier."""

    def __init__(self, estimator, classes: list[str]):
        self.estimator = estimator
        self.classes = list(classes)
        self.name = type(estimator).__name__

    def apply(self, example_set: ExampleSet) -> ExampleSet:
        n_classes = len(self.classes)
        confidences = np.zeros((len(example_set), n_classes))

        if hasattr(self.estimator, "predict_proba"):
            proba = self.estimator.predict_proba(example_set.features)
            columns = np.asarray(self.estimator.classes_, dtype=np.int64)
            confidences[:, columns] = proba
            predictions = np.argmax(confidences, axis=1)
        else:
            predictions = np.asarray(self.estimator.predict(example_set.features), dtype=np.int64)
            confidences[np.arange(len(example_set)), predictions] = 1.0

        return predicted_copy(example_set, predictions, confidences, self.classes)

    def __repr__(self) -> str:
        return f"SklearnModel({self.estimator!r})"


class SklearnLearner:
    """
    Adapts a scikit-learn classifier to the base-learner capability.

    The estimator is cloned for every ``train`` call and fitted on the
    class indices with the example weights as ``sample_weight``.

    Example:
        learner = SklearnLearner(DecisionTreeClassifier(max_depth=1))
        model = learner.train(example_set)
    """

    def __init__(self, estimator):
        self.estimator = estimator

    def train(self, example_set: ExampleSet) -> SklearnModel:
        check_trainable(example_set)
        estimator = clone(self.estimator)

        fit_kwargs = {}
        if example_set.weights is not None:
            fit_kwargs["sample_weight"] = example_set.weights

        estimator.fit(example_set.features, example_set.labels, **fit_kwargs)
        logger.debug(f"Fitted {type(estimator).__name__} on {len(example_set)} examples")
        return SklearnModel(estimator, example_set.classes)
