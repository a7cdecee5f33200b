"""Base-learner capability and the scikit-learn adapter."""

from .base import Learner, Model, SklearnLearner, SklearnModel, model_name, predicted_copy


__all__ = [
    "Learner",
    "Model",
    "SklearnLearner",
    "SklearnModel",
    "model_name",
    "predicted_copy",
]
