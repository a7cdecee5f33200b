"""
Pydantic Contracts for ensemble learner parameters.

Every training entry point accepts its parameters as a contract object,
a plain dict, or nothing at all (defaults). Contracts are validated before
any base learner is invoked, so a malformed configuration never starts a
training loop.
"""

from __future__ import annotations

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import get_config


class MetaLearnerError(Exception):
    """Base class for all errors raised by meta-learners."""

    pass


class ConfigurationError(MetaLearnerError, ValueError):
    """Raised when learner parameters are invalid."""

    pass


class DataError(MetaLearnerError, ValueError):
    """Raised when an example set cannot be used for training."""

    pass


def _default_iterations() -> int:
    return get_config().boosting.iterations


# === Boosting Contracts ===


class AdaBoostParams(BaseModel):
    """Parameters of the AdaBoost training loop."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    iterations: int = Field(
        default_factory=_default_iterations, ge=1, description="Maximum number of base models"
    )


class BayesianBoostingParams(BaseModel):
    """Parameters of the Bayesian boosting training loop.

    ``use_subset_for_training`` below 1.0 splits every iteration's data into a
    training part and a hold-out part used to estimate the contingency matrix.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    iterations: int = Field(default_factory=_default_iterations, ge=1)
    use_subset_for_training: float = Field(
        default=1.0, gt=0.0, le=1.0, description="Fraction of rows used to train each model"
    )
    rescale_label_priors: bool = Field(
        default=False, description="Give every class the same total weight before the first iteration"
    )
    allow_marginal_skews: bool = Field(
        default=True, description="Let the prediction marginals shift between iterations"
    )
    random_seed: int | None = Field(default=None, description="Seed for the hold-out split")


class SDRulesetParams(BaseModel):
    """Parameters of subgroup-discovery ruleset induction."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    iterations: int = Field(default_factory=_default_iterations, ge=1)
    ratio_internal_bootstrap: float = Field(
        default=0.7, gt=0.0, le=1.0, description="Fraction of rows used to induce each rule"
    )
    roc_convex_hull_filter: bool = Field(
        default=True, description="Keep only rules on the ROC convex hull"
    )
    additive_reweight: bool = Field(
        default=True, description="Additive (1/(1+k)) instead of multiplicative (gamma^k) reweighting"
    )
    gamma: float = Field(default=0.9, ge=0.0, le=1.0, description="Multiplicative reweighting factor")
    random_seed: int | None = None


# === Voting Contracts ===


class BaggingParams(BaseModel):
    """Parameters of the bagging trainer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    iterations: int = Field(default_factory=_default_iterations, ge=1)
    sample_ratio: float = Field(default=0.9, gt=0.0, le=1.0)
    bootstrap: bool = Field(default=True, description="Sample with replacement")
    average_confidences: bool = Field(
        default=True, description="Average confidences instead of majority voting"
    )
    random_seed: int | None = None


class MultiClassParams(BaseModel):
    """Parameters of binary-to-multiclass decomposition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    strategy: Literal["one_vs_all", "one_vs_one", "exhaustive_code", "random_code"] = "one_vs_all"
    random_code_multiplicator: float = Field(
        default=2.0, ge=1.0, description="Random code length as a multiple of the class count"
    )
    random_seed: int | None = None

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, v: Any) -> Any:
        """Accept dashed and mixed-case spellings such as "One-vs-All"."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_").replace(" ", "_")
        return v


P = TypeVar("P", bound=BaseModel)


def resolve_params(params_class: type[P], params: P | dict | None) -> P:
    """Turn a contract object, a dict, or None into a validated contract.

    Raises:
        ConfigurationError: If the parameters violate the contract.
    """
    if params is None:
        params = {}
    if isinstance(params, params_class):
        return params
    if isinstance(params, BaseModel):
        params = params.model_dump()
    if not isinstance(params, dict):
        raise ConfigurationError(
            f"Expected {params_class.__name__} or dict, got {type(params).__name__}"
        )
    try:
        return params_class(**params)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {params_class.__name__}: {e}") from e


def validate_probability(name: str, value: float) -> float:
    """Check that a user-facing threshold lies in [0, 1]."""
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be in [0, 1], got {value}")
    return value

