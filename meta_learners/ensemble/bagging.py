"""Bagging: base models trained on random samples, combined by averaging or voting."""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..core.contracts import BaggingParams, resolve_params
from ..core.logger import LogContext, get_logger
from ..data.example_set import ExampleSet, check_trainable
from ..learners.base import Learner
from .models import BaseModelInfo, Combination, EnsembleModel


logger = get_logger(__name__)


class Bagging:
    """
    Train ``iterations`` base models on samples of ``sample_ratio * n`` rows.

    Samples are drawn with replacement when ``bootstrap`` is set. The
    ensemble averages member confidences, or lets every member cast one vote
    through the additive combination when ``average_confidences`` is off.
    """

    def __init__(self, learner: Learner, params: BaggingParams | dict | None = None):
        self.learner = learner
        self.params = resolve_params(BaggingParams, params)
        self.current_iteration = 0

    def train(
        self,
        example_set: ExampleSet,
        stop_requested: Callable[[], bool] | None = None,
    ) -> EnsembleModel:
        check_trainable(example_set)
        params = self.params
        n = len(example_set)
        sample_size = max(1, int(round(params.sample_ratio * n)))
        rng = np.random.default_rng(params.random_seed)
        members: list[BaseModelInfo] = []

        with LogContext(__name__, f"Bagging ({params.iterations} iterations)"):
            for i in range(params.iterations):
                self.current_iteration = i
                if stop_requested is not None and stop_requested():
                    logger.info(f"Stop requested, keeping {len(members)} models")
                    break

                if params.bootstrap:
                    sample = rng.integers(0, n, size=sample_size)
                else:
                    sample = np.sort(rng.choice(n, size=sample_size, replace=False))

                model = self.learner.train(example_set.select(sample))
                members.append(BaseModelInfo(model=model, weight=1.0))

        class_weights = example_set.class_weights()
        priors = class_weights / class_weights.sum()
        combination = (
            Combination.AVERAGING if params.average_confidences else Combination.ADDITIVE_WEIGHTED
        )
        return EnsembleModel(combination, members, priors, example_set.classes)
