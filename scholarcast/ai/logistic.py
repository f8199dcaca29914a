# scholarcast/ai/logistic.py
"""
L2-regularized binomial logistic regression over the fixed feature schema.

Training is plain full-batch gradient descent in numpy; scikit-learn is only used for
the AUC-ROC on the held-out split.
"""
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Mapping, Optional, Sequence

import numpy as np
from sklearn.metrics import roc_auc_score

from scholarcast.engine.feature_schema import FEATURE_LABELS, FEATURE_NAMES, to_row
from scholarcast.errors import InsufficientData, NumericInstability, ValidationError

LOGIT_CLIP = 500.0
LOSS_EPS = 1e-15
DECISION_THRESHOLD = 0.5

# Largest float64 below 1.0; sigmoid(500) rounds to exactly 1.0 otherwise
_P_MAX = float(np.nextafter(1.0, 0.0))
_P_MIN = float(np.nextafter(0.0, 1.0))

# Hand-set prior used when a scope is reset before any training data exists
DEFAULT_WEIGHTS: Dict[str, float] = {
    "gwaScore": 1.5,
    "yearLevelMatch": 0.5,
    "incomeMatch": 1.0,
    "stBracketMatch": 0.5,
    "collegeMatch": 0.5,
    "courseMatch": 0.5,
    "citizenshipMatch": 0.5,
    "documentCompleteness": 1.0,
    "applicationTiming": 0.3,
    "eligibilityScore": 2.0,
    "academicStrength": 0.5,
    "financialNeed": 0.5,
    "programFit": 0.3,
    "applicationQuality": 0.5,
    "overallFit": 0.8,
}
DEFAULT_BIAS = -4.0


@dataclass
class Sample:
    features: Dict[str, float]
    label: int  # 1 approved, 0 rejected


@dataclass
class TrainingConfig:
    learning_rate: float = 0.1
    epochs: int = 1000
    l2_coefficient: float = 0.0001
    split_fraction: float = 0.8
    min_samples: int = 30
    random_seed: int = 42
    convergence_epsilon: float = 1e-7

    @classmethod
    def from_settings(cls, settings, *, min_samples: Optional[int] = None) -> "TrainingConfig":
        return cls(
            learning_rate=settings.LEARNING_RATE,
            epochs=settings.EPOCHS,
            l2_coefficient=settings.L2_COEFFICIENT,
            split_fraction=settings.TRAIN_TEST_SPLIT,
            min_samples=min_samples if min_samples is not None else settings.MIN_SAMPLES_PER_SCHOLARSHIP,
            random_seed=settings.RANDOM_SEED,
            convergence_epsilon=settings.CONVERGENCE_EPSILON,
        )

    def validate(self) -> None:
        if not (self.learning_rate > 0 and np.isfinite(self.learning_rate)):
            raise ValidationError("learning_rate must be a positive finite number")
        if self.epochs < 1:
            raise ValidationError("epochs must be at least 1")
        if self.l2_coefficient < 0:
            raise ValidationError("l2_coefficient must be non-negative")
        if not 0.0 < self.split_fraction < 1.0:
            raise ValidationError("split_fraction must be strictly between 0 and 1")
        if self.min_samples < 2:
            raise ValidationError("min_samples must be at least 2 so both splits are non-empty")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrainingMetrics:
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    true_positives: int
    true_negatives: int
    false_positives: int
    false_negatives: int
    train_accuracy: float
    auc_roc: Optional[float]
    final_loss: float
    convergence_epoch: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TrainingRun:
    weights: Dict[str, float]
    bias: float
    metrics: TrainingMetrics
    training_stats: dict
    loss_history: List[float] = field(default_factory=list)


# -------------------------
# math helpers
# -------------------------
def sigmoid(z):
    z = np.clip(z, -LOGIT_CLIP, LOGIT_CLIP)
    return np.clip(1.0 / (1.0 + np.exp(-z)), _P_MIN, _P_MAX)


def _loss(y: np.ndarray, p: np.ndarray, w: np.ndarray, l2: float) -> float:
    p = np.clip(p, LOSS_EPS, 1.0 - LOSS_EPS)
    bce = -np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p))
    return float(bce + 0.5 * l2 * np.dot(w, w))


def _split(n: int, fraction: float, seed: int) -> tuple[np.ndarray, np.ndarray]:
    order = np.random.default_rng(seed).permutation(n)
    n_train = max(1, min(n - 1, int(n * fraction)))
    return order[:n_train], order[n_train:]


def _safe_div(a: float, b: float) -> float:
    return float(a) / float(b) if b else 0.0


def _evaluate(y: np.ndarray, p: np.ndarray) -> dict:
    pred = (p >= DECISION_THRESHOLD).astype(int)
    y = y.astype(int)
    tp = int(np.sum((pred == 1) & (y == 1)))
    tn = int(np.sum((pred == 0) & (y == 0)))
    fp = int(np.sum((pred == 1) & (y == 0)))
    fn = int(np.sum((pred == 0) & (y == 1)))

    precision = _safe_div(tp, tp + fp)
    recall = _safe_div(tp, tp + fn)
    f1 = _safe_div(2 * precision * recall, precision + recall)
    auc = float(roc_auc_score(y, p)) if len(np.unique(y)) == 2 else None

    return {
        "accuracy": _safe_div(tp + tn, len(y)),
        "precision": precision,
        "recall": recall,
        "f1_score": f1,
        "true_positives": tp,
        "true_negatives": tn,
        "false_positives": fp,
        "false_negatives": fn,
        "auc_roc": auc,
    }


# -------------------------
# training
# -------------------------
def train(samples: Sequence[Sample], config: TrainingConfig | None = None) -> TrainingRun:
    config = config or TrainingConfig()
    config.validate()

    if len(samples) < config.min_samples:
        raise InsufficientData(found=len(samples), required=config.min_samples)

    X = np.array([to_row(s.features) for s in samples], dtype=float)
    y = np.array([1.0 if s.label else 0.0 for s in samples], dtype=float)
    if not np.all(np.isfinite(X)):
        raise ValidationError("Feature vectors must be finite")

    train_idx, test_idx = _split(len(samples), config.split_fraction, config.random_seed)
    X_train, y_train = X[train_idx], y[train_idx]
    X_test, y_test = X[test_idx], y[test_idx]

    n = X_train.shape[0]
    w = np.zeros(X.shape[1])
    b = 0.0
    lam = config.l2_coefficient
    lr = config.learning_rate

    history: List[float] = []
    convergence_epoch = config.epochs
    for epoch in range(1, config.epochs + 1):
        p = sigmoid(X_train @ w + b)
        loss = _loss(y_train, p, w, lam)
        if not np.isfinite(loss):
            raise NumericInstability(f"Loss became non-finite at epoch {epoch}", epoch=epoch)

        err = p - y_train
        w = w - lr * (X_train.T @ err / n + lam * w)
        b = b - lr * float(np.mean(err))
        if not (np.all(np.isfinite(w)) and np.isfinite(b)):
            raise NumericInstability(f"Weights became non-finite at epoch {epoch}", epoch=epoch)

        if history and abs(history[-1] - loss) < config.convergence_epsilon:
            history.append(loss)
            convergence_epoch = epoch
            break
        history.append(loss)

    train_pred = sigmoid(X_train @ w + b)
    test_pred = sigmoid(X_test @ w + b)
    scored = _evaluate(y_test, test_pred)
    train_accuracy = _safe_div(
        int(np.sum((train_pred >= DECISION_THRESHOLD).astype(int) == y_train.astype(int))), n
    )

    metrics = TrainingMetrics(
        train_accuracy=train_accuracy,
        final_loss=history[-1],
        convergence_epoch=convergence_epoch,
        **scored,
    )
    approved = int(y.sum())
    stats = {
        "total_samples": len(samples),
        "approved_count": approved,
        "rejected_count": len(samples) - approved,
        "train_set_size": int(n),
        "test_set_size": int(X_test.shape[0]),
    }
    weights = {name: float(v) for name, v in zip(FEATURE_NAMES, w)}
    return TrainingRun(weights=weights, bias=float(b), metrics=metrics,
                       training_stats=stats, loss_history=history)


# -------------------------
# inference
# -------------------------
def _logit(weights: Mapping[str, float], bias: float, features: Mapping[str, float]) -> float:
    # only features the weight set knows about take part
    z = float(bias)
    for name, w in weights.items():
        z += float(w) * float(features.get(name, 0.0))
    return z


def predict(weights: Mapping[str, float], bias: float, features: Mapping[str, float]) -> float:
    return float(sigmoid(_logit(weights, bias, features)))


def explain(weights: Mapping[str, float], features: Mapping[str, float]) -> List[dict]:
    """Per-feature weight x value, largest absolute contribution first."""
    rows = []
    for order, name in enumerate(FEATURE_NAMES):
        if name not in weights:
            continue
        value = float(features.get(name, 0.0))
        contribution = float(weights[name]) * value
        rows.append((order, {
            "feature": name,
            "label": FEATURE_LABELS.get(name, name),
            "value": value,
            "weight": float(weights[name]),
            "contribution": contribution,
            "direction": "positive" if contribution >= 0 else "negative",
        }))
    rows.sort(key=lambda r: (-abs(r[1]["contribution"]), r[0]))
    return [r for _, r in rows]


def feature_importance(weights: Mapping[str, float]) -> List[dict]:
    total = sum(abs(float(w)) for w in weights.values())
    ranked = []
    for order, name in enumerate(FEATURE_NAMES):
        if name not in weights:
            continue
        w = float(weights[name])
        ranked.append((order, {
            "feature": name,
            "label": FEATURE_LABELS.get(name, name),
            "weight": w,
            "importance": abs(w) / total if total else 0.0,
        }))
    ranked.sort(key=lambda r: (-r[1]["importance"], r[0]))
    return [r for _, r in ranked]
