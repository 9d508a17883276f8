"""Unit tests for classification metrics computation."""

import numpy as np
import pytest

from graph_fm.metrics import compute_classification_metrics, top_k_hits


def test_compute_classification_metrics_on_perfect_ranking():
    """Checks metric values on a tiny example with perfect ranking.

    Perfectly ranked scores make closed-form checks of ROC-AUC, PR-AUC, F1,
    Precision@k, Recall@k and Brier easy.
    """
    y_true = np.array([0, 1, 1, 0], dtype=int)
    y_score = np.array([0.1, 0.9, 0.8, 0.2], dtype=float)
    m = compute_classification_metrics(y_true, y_score, k=2)

    assert m["roc_auc"] == pytest.approx(1.0)
    assert m["pr_auc"] == pytest.approx(1.0)
    assert m["f1"] == pytest.approx(1.0)
    assert m["precision_at_k"] == pytest.approx(1.0)
    assert m["recall_at_k"] == pytest.approx(1.0)
    assert m["brier"] == pytest.approx(0.025)


def test_compute_classification_metrics_on_constant_labels():
    """Checks the documented defaults when y_true is constant."""
    y_true = np.ones(4, dtype=int)
    y_score = np.array([0.1, 0.2, 0.3, 0.4], dtype=float)
    m = compute_classification_metrics(y_true, y_score, k=2)

    assert m["roc_auc"] == 0.5
    assert m["pr_auc"] == 1.0
    assert m["f1"] == 0.0
    assert m["precision_at_k"] == pytest.approx(1.0)


def test_precision_at_k_breaks_ties_by_input_order():
    """Equal scores keep their input order when picking the top k."""
    y_true = np.array([0, 1, 1], dtype=int)
    y_score = np.array([0.5, 0.5, 0.1], dtype=float)
    m = compute_classification_metrics(y_true, y_score, k=1)
    assert m["precision_at_k"] == 0.0
    assert m["recall_at_k"] == pytest.approx(0.0)


def test_compute_classification_metrics_rejects_bad_input():
    """Mismatched or empty inputs raise ValueError."""
    with pytest.raises(ValueError):
        compute_classification_metrics(np.array([0, 1]), np.array([0.5]), k=1)
    with pytest.raises(ValueError):
        compute_classification_metrics(np.array([]), np.array([]), k=1)


def test_accuracy_and_threshold():
    """Accuracy counts hard predictions at the configured threshold."""
    y_true = np.array([1, 0, 1, 0], dtype=int)
    y_score = np.array([0.6, 0.4, 0.3, 0.7], dtype=float)
    assert compute_classification_metrics(y_true, y_score, k=1)["accuracy"] == 0.5
    lowered = compute_classification_metrics(y_true, y_score, k=1, threshold=0.25)
    assert lowered["accuracy"] == 0.5
    assert lowered["f1"] == pytest.approx(2 / 3)


def test_top_k_hits_clamps_k_to_the_sample_count():
    """A cut-off beyond the sample count ranks every sample."""
    precision, recall = top_k_hits(np.array([1, 0, 1]), np.array([0.9, 0.8, 0.1]), k=10)
    assert precision == pytest.approx(2 / 3)
    assert recall == 1.0
    assert top_k_hits(np.array([1]), np.array([0.9]), k=0) == (0.0, 0.0)
