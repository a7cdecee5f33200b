"""
Ensemble models produced by the meta-learners.

One model class with three combination schemes, chosen at construction:

- ``ADDITIVE_WEIGHTED``: every member adds its scalar weight to the score of
  the class it predicts; scores become probabilities via softmax (AdaBoost,
  majority voting).
- ``MULTIPLICATIVE_ODDS``: per-class odds start at the prior odds and are
  multiplied by the lift ratios of every member's contingency matrix
  (Bayesian boosting, multiplicative subgroup discovery).
- ``AVERAGING``: member confidences (or the class distribution of the
  subset a rule covers) are averaged (bagging, additive subgroup discovery).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np

from ..core.config import get_config
from ..core.contracts import ConfigurationError, DataError, validate_probability
from ..core.logger import get_logger
from ..data.example_set import ExampleSet
from ..learners.base import model_name
from .combination import (
    adjust_intermediate_products,
    crisp_predictions,
    odds_to_probabilities,
    prior_odds,
    softmax_scores,
)
from .contingency import ContingencyMatrix


logger = get_logger(__name__)


class Combination(str, Enum):
    """How an ensemble combines the evidence of its members."""

    ADDITIVE_WEIGHTED = "additive_weighted"
    MULTIPLICATIVE_ODDS = "multiplicative_odds"
    AVERAGING = "averaging"


@dataclass(frozen=True)
class BaseModelInfo:
    """
    One ensemble member.

    Attributes:
        model: Trained base model
        contingency_matrix: Matrix estimated at training time (multiplicative
            combination and covered-subset averaging)
        weight: Scalar vote weight (additive combination)
        applies_to: If set, the member only contributes to rows whose crisp
            prediction equals this index
    """

    model: Any
    contingency_matrix: ContingencyMatrix | None = None
    weight: float = 1.0
    applies_to: int | None = None


class EnsembleModel:
    """
    A trained ensemble of base models.

    The member list is fixed after construction; ``set_active_model_limit``
    restricts prediction to the first ``k`` members without retraining.

    Example:
        model = BayesianBoosting(learner).train(example_set)
        model.set_active_model_limit(3)
        predicted = model.predict(test_set)
    """

    def __init__(
        self,
        combination: Combination | str,
        members: list[BaseModelInfo],
        priors: np.ndarray,
        classes: list[str],
        threshold: float = 0.5,
    ):
        self.combination = Combination(combination)
        self._members = list(members)
        self._priors = np.asarray(priors, dtype=np.float64).copy()
        self.classes = list(classes)
        self._threshold = validate_probability("threshold", threshold)
        self._active_limit = -1

        if len(self._priors) != len(self.classes):
            raise DataError(f"Got {len(self._priors)} priors for {len(self.classes)} classes")
        if self.combination is Combination.MULTIPLICATIVE_ODDS:
            for i, member in enumerate(self._members):
                if member.contingency_matrix is None:
                    raise DataError(f"Member {i} of a multiplicative ensemble has no contingency matrix")

    # ==================== Introspection ====================

    def set_active_model_limit(self, k: int):
        """Use only the first ``k`` members for prediction; -1 uses all of them."""
        if k < -1:
            raise ConfigurationError(f"Active model limit must be >= -1, got {k}")
        self._active_limit = k

    def model_count(self) -> int:
        """Number of members used for prediction."""
        if self._active_limit >= 0:
            return min(self._active_limit, len(self._members))
        return len(self._members)

    def get_model_info(self, index: int) -> BaseModelInfo:
        return self._members[index]

    def get_model(self, index: int):
        return self._members[index].model

    def get_contingency_matrix(self, index: int) -> ContingencyMatrix | None:
        return self._members[index].contingency_matrix

    def get_weight(self, index: int) -> float:
        return self._members[index].weight

    def model_names(self) -> list[str]:
        return [f"Model {i + 1}" for i in range(self.model_count())]

    @property
    def priors(self) -> np.ndarray:
        return self._priors.copy()

    @property
    def threshold(self) -> float:
        return self._threshold

    @threshold.setter
    def threshold(self, value: float):
        self._threshold = validate_probability("threshold", value)

    @property
    def number_of_classes(self) -> int:
        return len(self.classes)

    def _active_members(self) -> list[BaseModelInfo]:
        return self._members[: self.model_count()]

    # ==================== Prediction ====================

    def predict(self, example_set: ExampleSet, rng: np.random.Generator | None = None) -> ExampleSet:
        """
        Apply all active members and combine their evidence.

        Args:
            example_set: Rows to classify; left unmodified
            rng: Generator used to break ties between equally probable classes

        Returns:
            A copy of ``example_set`` with predictions and confidences
        """
        members = self._active_members()
        n = len(example_set)

        if not members:
            probabilities = np.tile(self._priors, (n, 1))
        elif self.combination is Combination.ADDITIVE_WEIGHTED:
            probabilities = self._combine_additive(example_set, members)
        elif self.combination is Combination.MULTIPLICATIVE_ODDS:
            probabilities = self._combine_multiplicative(example_set, members)
        else:
            probabilities = self._combine_averaging(example_set, members)

        if self.number_of_classes == 2 and self._threshold != 0.5:
            positive = example_set.positive_index
            negative = example_set.negative_index
            predictions = np.where(probabilities[:, positive] >= self._threshold, positive, negative)
        else:
            predictions = crisp_predictions(probabilities, rng)

        result = example_set.clone()
        result.classes = list(self.classes)
        result.set_predictions(predictions, probabilities)
        return result

    def apply(self, example_set: ExampleSet) -> ExampleSet:
        """Model capability: an ensemble can itself serve as a base model."""
        return self.predict(example_set)

    def _member_predictions(self, example_set: ExampleSet, member: BaseModelInfo):
        applied = member.model.apply(example_set)
        if applied.predictions is None:
            raise DataError(f"{model_name(member.model)} did not produce predictions")

        predictions = applied.predictions
        usable = (predictions >= 0) & (predictions < self.number_of_classes)
        if member.applies_to is not None:
            usable &= predictions == member.applies_to
        return applied, predictions, usable

    def _combine_additive(self, example_set: ExampleSet, members: list[BaseModelInfo]) -> np.ndarray:
        scores = np.zeros((len(example_set), self.number_of_classes))
        for member in members:
            _, predictions, usable = self._member_predictions(example_set, member)
            rows = np.flatnonzero(usable)
            scores[rows, predictions[rows]] += member.weight
        return softmax_scores(scores)

    def _combine_multiplicative(self, example_set: ExampleSet, members: list[BaseModelInfo]) -> np.ndarray:
        products = np.tile(prior_odds(self._priors), (len(example_set), 1))
        for member in members:
            _, predictions, usable = self._member_predictions(example_set, member)
            ratio_matrix = member.contingency_matrix.lift_ratio_matrix()

            factors = np.full(products.shape, np.nan)
            in_matrix = usable & (predictions < ratio_matrix.shape[0])
            factors[in_matrix] = ratio_matrix[predictions[in_matrix]]

            adjust_intermediate_products(products, factors)
        return odds_to_probabilities(products)

    def _combine_averaging(self, example_set: ExampleSet, members: list[BaseModelInfo]) -> np.ndarray:
        n = len(example_set)
        totals = np.zeros((n, self.number_of_classes))
        counts = np.zeros(n)

        for member in members:
            applied, predictions, usable = self._member_predictions(example_set, member)

            if member.applies_to is not None and member.contingency_matrix is not None:
                column = member.contingency_matrix.matrix[:, member.applies_to]
                if column.sum() <= 0:
                    continue
                totals[usable] += column / column.sum()
            elif applied.confidences is not None:
                confidences = applied.confidences
                nan = np.isnan(confidences)
                if np.any(nan):
                    logger.warning(f"Replacing {int(np.sum(nan))} NaN confidences with 0")
                    confidences = np.nan_to_num(confidences, nan=0.0)
                illegal = (confidences < 0) | (confidences > 1)
                if np.any(illegal):
                    logger.warning(f"Found {int(np.sum(illegal))} illegal confidence values")
                usable = np.ones(n, dtype=bool) if member.applies_to is None else usable
                totals[usable] += confidences[usable]
            else:
                rows = np.flatnonzero(usable)
                totals[rows, predictions[rows]] += 1.0
            counts[usable] += 1

        sums = totals.sum(axis=1, keepdims=True)
        uncovered = (counts == 0) | (sums[:, 0] <= 0)
        probabilities = np.empty_like(totals)
        probabilities[~uncovered] = totals[~uncovered] / sums[~uncovered]
        probabilities[uncovered] = self._priors
        return probabilities

    # ==================== Linear weights ====================

    def model_weights(self, max_weight: float | None = None) -> np.ndarray:
        """
        Flatten a binary multiplicative ensemble into log-linear weights.

        ``weights[0]`` is the model-independent offset (log prior odds plus
        the shared part of every member); ``weights[i]`` is the log odds
        update of member ``i`` when it predicts the positive class. Log lift
        ratios are clamped to ``[-max_weight, max_weight]``.

        Raises:
            DataError: For non-binary labels or non-multiplicative ensembles
        """
        if self.number_of_classes != 2:
            raise DataError(
                f"Model weights require a binary label, got {self.number_of_classes} classes"
            )
        if self.combination is not Combination.MULTIPLICATIVE_ODDS:
            raise DataError("Model weights are only defined for multiplicative ensembles")

        if max_weight is None:
            max_weight = get_config().boosting.max_model_weight
        tolerance = get_config().boosting.equality_tolerance
        positive, negative = 1, 0

        members = self._active_members()
        weights = np.zeros(len(members) + 1)
        with np.errstate(divide="ignore", invalid="ignore"):
            weights[0] = np.log(self._priors[positive] / self._priors[negative])
            for i, member in enumerate(members, start=1):
                cm = member.contingency_matrix
                log_pos = np.clip(np.log(cm.lift_ratio(positive, positive)), -max_weight, max_weight)
                log_neg = np.clip(np.log(cm.lift_ratio(positive, negative)), -max_weight, max_weight)

                independent = (log_pos + log_neg) / 2
                if abs(abs(independent) - max_weight) <= tolerance:
                    # the prediction does not matter: flag the member with an out-of-range weight
                    log_pos = 10 * independent
                    independent = 0.0

                weights[0] += independent
                weights[i] = log_pos - independent

        return weights

    def __repr__(self) -> str:
        return (
            f"EnsembleModel(combination={self.combination.value}, "
            f"models={self.model_count()}/{len(self._members)}, classes={self.classes})"
        )
