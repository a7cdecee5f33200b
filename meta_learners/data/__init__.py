"""Example set representation used by every learner."""

from .example_set import ExampleSet, check_trainable, preserved_weights


__all__ = [
    "ExampleSet",
    "check_trainable",
    "preserved_weights",
]
