"""
Binary-to-multiclass decomposition.

A multi-class problem is split into binary functions described by a code
pattern: for every class and function, whether the class takes part
(``enabled``) and on which side (``code``). One binary base model is
trained per function.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..core.contracts import MultiClassParams, resolve_params
from ..core.logger import LogContext, get_logger
from ..data.example_set import ExampleSet, check_trainable
from ..learners.base import Learner, Model, predicted_copy
from .combination import crisp_predictions


logger = get_logger(__name__)

BINARY_CLASSES = ["false", "true"]


@dataclass
class CodePattern:
    """Class x function matrices of code bits and enabled partitions."""

    code: np.ndarray
    enabled: np.ndarray
    names: list[str]

    @property
    def number_of_functions(self) -> int:
        return self.code.shape[1]


def one_vs_all_pattern(classes: list[str]) -> CodePattern:
    n = len(classes)
    return CodePattern(
        code=np.eye(n, dtype=bool),
        enabled=np.ones((n, n), dtype=bool),
        names=[f"{c} vs. all other" for c in classes],
    )


def one_vs_one_pattern(classes: list[str]) -> CodePattern:
    n = len(classes)
    pairs = [(a, b) for a in range(n) for b in range(a + 1, n)]
    code = np.zeros((n, len(pairs)), dtype=bool)
    enabled = np.zeros((n, len(pairs)), dtype=bool)
    for j, (a, b) in enumerate(pairs):
        enabled[a, j] = enabled[b, j] = True
        code[a, j] = True
    return CodePattern(code=code, enabled=enabled, names=[f"{classes[a]} vs. {classes[b]}" for a, b in pairs])


def exhaustive_code_pattern(classes: list[str]) -> CodePattern:
    """All ``2^(C-1) - 1`` distinct splits; the first class is always on the true side."""
    n = len(classes)
    n_functions = 2 ** (n - 1) - 1
    columns = np.arange(n_functions)
    code = np.ones((n, n_functions), dtype=bool)
    for i in range(1, n):
        step = 2 ** (n - i - 1)
        code[i] = (columns // step) % 2 > 0
    return CodePattern(
        code=code,
        enabled=np.ones((n, n_functions), dtype=bool),
        names=[f"Function {j + 1}" for j in range(n_functions)],
    )


def random_code_pattern(
    classes: list[str], multiplicator: float, rng: np.random.Generator
) -> CodePattern:
    """Random code words of length ``int(C * multiplicator)``; every column gets both bits."""
    n = len(classes)
    n_functions = int(n * multiplicator)
    code = rng.random((n, n_functions)) < 0.5

    for j in range(n_functions):
        if not code[:, j].any():
            code[int(rng.random() * (n - 1)), j] = True
        elif code[:, j].all():
            code[int(rng.random() * (n - 1)), j] = False

    return CodePattern(
        code=code,
        enabled=np.ones((n, n_functions), dtype=bool),
        names=[f"Function {j + 1}" for j in range(n_functions)],
    )


class DecompositionModel:
    """
    Combines the binary models of a code pattern into multi-class predictions.

    One-vs-all picks the class with the highest positive confidence,
    one-vs-one counts pairwise votes, and code-based strategies pick the
    class whose code word is closest to the positive confidences.
    """

    def __init__(self, strategy: str, models: list[Model], pattern: CodePattern, classes: list[str]):
        self.strategy = strategy
        self.models = list(models)
        self.pattern = pattern
        self.classes = list(classes)

    def model_count(self) -> int:
        return len(self.models)

    def get_model(self, index: int) -> Model:
        return self.models[index]

    def model_names(self) -> list[str]:
        return list(self.pattern.names)

    def _positive_confidences(self, example_set: ExampleSet) -> np.ndarray:
        """(n x F) confidence of the true side of every binary function."""
        positive = np.zeros((len(example_set), len(self.models)))
        for j, model in enumerate(self.models):
            applied = model.apply(example_set)
            if applied.confidences is not None and applied.confidences.shape[1] == 2:
                positive[:, j] = applied.confidences[:, 1]
            else:
                positive[:, j] = (applied.predictions == 1).astype(np.float64)

        nan = np.isnan(positive)
        if np.any(nan):
            logger.warning(f"Replacing {int(np.sum(nan))} NaN confidences of binary models with 0")
            positive[nan] = 0.0
        return positive

    def predict(self, example_set: ExampleSet, rng: np.random.Generator | None = None) -> ExampleSet:
        positive = self._positive_confidences(example_set)
        n_classes = len(self.classes)

        if self.strategy == "one_vs_all":
            scores = positive.copy()
        elif self.strategy == "one_vs_one":
            scores = np.zeros((len(example_set), n_classes))
            for j in range(self.pattern.number_of_functions):
                side_a, side_b = np.flatnonzero(self.pattern.enabled[:, j])
                true_side = side_a if self.pattern.code[side_a, j] else side_b
                false_side = side_b if true_side == side_a else side_a
                votes_true = positive[:, j] >= 0.5
                scores[votes_true, true_side] += 1
                scores[~votes_true, false_side] += 1
        else:
            # confidence-weighted Hamming distance to every class code word
            code = self.pattern.code.astype(np.float64)
            distances = np.abs(positive[:, None, :] - code[None, :, :]).sum(axis=2)
            scores = self.pattern.number_of_functions - distances

        sums = scores.sum(axis=1, keepdims=True)
        empty = sums[:, 0] <= 0
        confidences = np.full_like(scores, 1.0 / n_classes)
        confidences[~empty] = scores[~empty] / sums[~empty]

        predictions = crisp_predictions(confidences, rng)
        return predicted_copy(example_set, predictions, confidences, self.classes)

    def apply(self, example_set: ExampleSet) -> ExampleSet:
        return self.predict(example_set)


class MultiClassDecomposition:
    """
    Train a binary base learner on a multi-class label.

    Binary labels are passed to the base learner unchanged.

    Example:
        learner = MultiClassDecomposition(SklearnLearner(LogisticRegression()), {"strategy": "one_vs_one"})
        model = learner.train(example_set)
    """

    def __init__(self, learner: Learner, params: MultiClassParams | dict | None = None):
        self.learner = learner
        self.params = resolve_params(MultiClassParams, params)

    def build_pattern(self, classes: list[str]) -> CodePattern:
        strategy = self.params.strategy
        if strategy == "one_vs_all":
            return one_vs_all_pattern(classes)
        if strategy == "one_vs_one":
            return one_vs_one_pattern(classes)
        if strategy == "exhaustive_code":
            return exhaustive_code_pattern(classes)
        rng = np.random.default_rng(self.params.random_seed)
        return random_code_pattern(classes, self.params.random_code_multiplicator, rng)

    def train(self, example_set: ExampleSet) -> Model:
        check_trainable(example_set)
        if example_set.number_of_classes <= 2:
            return self.learner.train(example_set)

        strategy = self.params.strategy
        pattern = self.build_pattern(example_set.classes)
        labels = example_set.labels
        known = (labels >= 0) & (labels < example_set.number_of_classes)

        models = []
        with LogContext(__name__, f"Multi-class decomposition ({strategy}, {pattern.number_of_functions} functions)"):
            for j in range(pattern.number_of_functions):
                rows = np.flatnonzero(known & pattern.enabled[np.where(known, labels, 0), j])
                binary_labels = pattern.code[labels[rows], j].astype(np.int64)

                subset = example_set.select(rows).with_labels(binary_labels, BINARY_CLASSES)
                logger.debug(f"Training {pattern.names[j]} on {len(rows)} examples")
                models.append(self.learner.train(subset))

        return DecompositionModel(strategy, models, pattern, example_set.classes)
