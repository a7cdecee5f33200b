"""
Prediction combination primitives shared by all ensemble models.

Additive scores are turned into distributions with a numerically stable
softmax; multiplicative models keep per-class odds that are updated with
lift ratios and finally translated into probabilities.
"""

from __future__ import annotations

import numpy as np
from scipy.special import softmax

from ..core.logger import get_logger


logger = get_logger(__name__)


def softmax_scores(scores: np.ndarray) -> np.ndarray:
    """
    Row-wise softmax of accumulated scores.

    Rows containing +inf (a model with infinite weight voted) or otherwise
    producing a non-finite distribution fall back to a one-hot distribution
    on the arg-max class.
    """
    scores = np.atleast_2d(np.asarray(scores, dtype=np.float64))
    with np.errstate(invalid="ignore", over="ignore"):
        probabilities = softmax(scores, axis=1)

    broken = ~np.all(np.isfinite(probabilities), axis=1)
    if np.any(broken):
        probabilities[broken] = 0.0
        probabilities[broken, np.argmax(scores[broken], axis=1)] = 1.0
    return probabilities


def crisp_predictions(
    probabilities: np.ndarray, rng: np.random.Generator | None = None
) -> np.ndarray:
    """
    Index of the most probable class per row.

    Ties go to the lowest index unless a generator is given, in which case
    one of the tied classes is drawn uniformly.
    """
    probabilities = np.atleast_2d(probabilities)
    predictions = np.argmax(probabilities, axis=1)
    if rng is None:
        return predictions

    maxima = probabilities.max(axis=1, keepdims=True)
    tied = probabilities == maxima
    for row in np.flatnonzero(tied.sum(axis=1) > 1):
        predictions[row] = rng.choice(np.flatnonzero(tied[row]))
    return predictions


def prior_odds(priors: np.ndarray) -> np.ndarray:
    """Odds ``p / (1 - p)`` of every class, +inf for a prior of 1."""
    priors = np.asarray(priors, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore"):
        odds = priors / (1.0 - priors)
    return np.where(priors == 1.0, np.inf, odds)


def adjust_intermediate_products(products: np.ndarray, factors: np.ndarray) -> np.ndarray:
    """
    Multiply per-class odds by lift ratios in place, row by row.

    Args:
        products: (n x C) running odds, modified in place
        factors: (n x C) lift ratios of the prediction each row received

    For every class ``j``: a NaN factor (rule does not apply) is ignored; an
    infinite factor makes ``j`` certain, so all odds of the row are reset to
    0 and ``j`` becomes +inf, unless ``j`` is already known to be wrong
    (odds 0); a regular factor multiplies the odds unless they are already
    infinite.

    Returns:
        Boolean mask of rows whose class became known in this update
    """
    products = np.atleast_2d(products)
    factors = np.atleast_2d(factors)
    known = np.zeros(len(products), dtype=bool)

    not_applicable = int(np.sum(np.all(np.isnan(factors), axis=1)))
    if not_applicable:
        logger.debug(f"Ignoring non-applicable model for {not_applicable} examples")

    for j in range(products.shape[1]):
        factor = factors[:, j]
        nan = np.isnan(factor)
        infinite = np.isinf(factor)

        certain = infinite & (products[:, j] != 0) & ~known
        if np.any(certain):
            products[certain, :] = 0.0
            products[certain, j] = factor[certain]
            known |= certain

        regular = ~nan & ~infinite & ~np.isinf(products[:, j]) & ~known
        products[regular, j] *= factor[regular]

    nan_products = int(np.sum(np.isnan(products)))
    if nan_products:
        logger.warning(f"Found {nan_products} NaN values in intermediate odds ratio estimates")
    return known


def odds_to_probabilities(odds: np.ndarray) -> np.ndarray:
    """
    Translate per-class odds into normalized class probabilities.

    ``o / (1 + o)`` per class, 1 for infinite odds and (with a warning) for
    NaN odds; every row is then rescaled to sum to 1. A row whose
    probabilities are all 0 becomes uniform.
    """
    odds = np.atleast_2d(np.asarray(odds, dtype=np.float64))

    nan = np.isnan(odds)
    if np.any(nan):
        logger.warning(f"Found {int(np.sum(nan))} NaN odds ratio estimates")

    with np.errstate(divide="ignore", invalid="ignore"):
        probabilities = odds / (1.0 + odds)
    probabilities[np.isinf(odds) | nan] = 1.0

    sums = probabilities.sum(axis=1, keepdims=True)
    empty = sums[:, 0] == 0
    if np.any(empty):
        logger.warning(f"All class probabilities are 0 for {int(np.sum(empty))} examples, using uniform")
        probabilities[empty] = 1.0
        sums[empty] = probabilities.shape[1]

    rescale = sums[:, 0] != 1.0
    probabilities[rescale] /= sums[rescale]

    illegal = np.isnan(probabilities) | (probabilities < 0) | (probabilities > 1)
    if np.any(illegal):
        logger.warning(f"Found {int(np.sum(illegal))} illegal confidence values")
    return probabilities

