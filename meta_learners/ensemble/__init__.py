"""
Ensemble learners and the models they produce.

Boosting (AdaBoost, Bayesian boosting), subgroup-discovery ruleset
induction, bagging and binary-to-multiclass decomposition, all built on the
contingency-matrix and reweighting machinery in this package.
"""

from .adaboost import AdaBoost
from .bagging import Bagging
from .bayesian_boosting import BayesianBoosting
from .combination import (
    adjust_intermediate_products,
    crisp_predictions,
    odds_to_probabilities,
    prior_odds,
    softmax_scores,
)
from .contingency import RULE_DOES_NOT_APPLY, ContingencyMatrix
from .models import BaseModelInfo, Combination, EnsembleModel
from .multiclass import (
    CodePattern,
    DecompositionModel,
    MultiClassDecomposition,
    exhaustive_code_pattern,
    one_vs_all_pattern,
    one_vs_one_pattern,
    random_code_pattern,
)
from .sd_reweight import SDReweightMeasures
from .sd_ruleset import SDRulesetInduction, is_on_convex_hull
from .weighted_performance import WeightedPerformanceMeasures, apply_with_weights


__all__ = [
    # Learners
    "AdaBoost",
    "Bagging",
    "BayesianBoosting",
    "MultiClassDecomposition",
    "SDRulesetInduction",
    # Models
    "BaseModelInfo",
    "Combination",
    "DecompositionModel",
    "EnsembleModel",
    # Performance and reweighting
    "ContingencyMatrix",
    "RULE_DOES_NOT_APPLY",
    "SDReweightMeasures",
    "WeightedPerformanceMeasures",
    "apply_with_weights",
    # Combination primitives
    "adjust_intermediate_products",
    "crisp_predictions",
    "odds_to_probabilities",
    "prior_odds",
    "softmax_scores",
    # Code patterns
    "CodePattern",
    "exhaustive_code_pattern",
    "is_on_convex_hull",
    "one_vs_all_pattern",
    "one_vs_one_pattern",
    "random_code_pattern",
]
