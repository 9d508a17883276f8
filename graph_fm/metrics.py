"""Metrics for scoring predicted edge existence against ground truth.

Scores are existence probabilities read back from the existence feature of the
held-out candidate edges; labels are 1 for edges that exist.
"""

from typing import Dict, Tuple

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    brier_score_loss,
    f1_score,
    roc_auc_score,
)


def top_k_hits(y_true: np.ndarray, y_score: np.ndarray, k: int) -> Tuple[float, float]:
    """Return ``(precision@k, recall@k)`` over the ``k`` highest scores.

    Ties keep their input order. ``k`` larger than the sample count uses every
    sample; ``k <= 0`` gives zeros.
    """
    if k <= 0:
        return 0.0, 0.0
    top = np.argsort(-y_score, kind="stable")[:k]
    hits = float(y_true[top].sum())
    positives = float(y_true.sum())
    return hits / len(top), (hits / positives if positives else 0.0)


def compute_classification_metrics(
    y_true: np.ndarray, y_score: np.ndarray, k: int, threshold: float = 0.5
) -> Dict[str, float]:
    """Summarise existence predictions.

    Ranking metrics (ROC-AUC, PR-AUC) fall back to 0.5 and the positive rate
    when only one class is present, since they are undefined there.

    Args:
        y_true: Binary labels, 1 for existing edges.
        y_score: Predicted probabilities of existence.
        k: Cut-off for precision@k and recall@k.
        threshold: Probability at or above which an edge is predicted to exist.

    Returns:
        Metric name to value.

    Raises:
        ValueError: If the inputs are empty or differ in shape.
    """
    y_true = np.asarray(y_true, dtype=int)
    y_score = np.asarray(y_score, dtype=float)
    if y_true.shape != y_score.shape:
        raise ValueError(f"Shape mismatch: labels {y_true.shape}, scores {y_score.shape}")
    if y_true.size == 0:
        raise ValueError("Cannot compute metrics without samples")

    y_pred = (y_score >= threshold).astype(int)
    precision_at_k, recall_at_k = top_k_hits(y_true, y_score, k)
    metrics = {
        "accuracy": float(accuracy_score(y_true, y_pred)),
        "precision_at_k": precision_at_k,
        "recall_at_k": recall_at_k,
        "brier": float(brier_score_loss(y_true, y_score)),
    }
    if len(np.unique(y_true)) > 1:
        metrics["roc_auc"] = float(roc_auc_score(y_true, y_score))
        metrics["pr_auc"] = float(average_precision_score(y_true, y_score))
        metrics["f1"] = float(f1_score(y_true, y_pred))
    else:
        metrics["roc_auc"] = 0.5
        metrics["pr_auc"] = float(y_true.mean())
        metrics["f1"] = 0.0
    return metrics
