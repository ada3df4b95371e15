"""
Splitters do workflow de referência.

Um splitter recebe o dataset e uma seed e devolve uma lista de `Split`
(índices posicionais de treino/teste). A execução adaptativa exige exatamente
um split por invocação (`units_per_invocation() == 1`).

    - RandomSplitter: um split treino/teste, estratificação opcional
    - CrossValidationSplitter: `cv_folds` splits (KFold embaralhado)

Princípios:
    - Reprodutibilidade total: a seed é sempre explícita (`random_state`)
    - Nenhuma heurística: parâmetros inválidos são rejeitados na construção
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, train_test_split

from flowengine.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class Split:
    train_index: List[int]
    test_index: List[int]
    seed: int
    fold: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "train_index": list(self.train_index),
            "test_index": list(self.test_index),
            "seed": self.seed,
            "fold": self.fold,
        }


class RandomSplitter:
    """Split aleatório treino/teste (`split_ratio` = fração de treino)."""

    name = "random"

    def __init__(self, *, split_ratio: float = 0.7, stratify_column: Optional[str] = None):
        if isinstance(split_ratio, bool) or not isinstance(split_ratio, (int, float)):
            raise ConfigurationError("split_ratio must be a number", details={"split_ratio": repr(split_ratio)})
        if not (0.0 < float(split_ratio) < 1.0):
            raise ConfigurationError(
                "split_ratio must be between 0 and 1 (exclusive)",
                details={"split_ratio": split_ratio},
            )
        self.split_ratio = float(split_ratio)
        self.stratify_column = stratify_column

    def units_per_invocation(self) -> int:
        return 1

    def split(self, data: pd.DataFrame, seed: int) -> List[Split]:
        positions = np.arange(len(data))
        stratify = None
        if self.stratify_column is not None:
            if self.stratify_column not in data.columns:
                raise ConfigurationError(
                    f"Stratify column not found: {self.stratify_column}",
                    details={"stratify_column": self.stratify_column},
                )
            stratify = data[self.stratify_column].to_numpy()

        try:
            train_idx, test_idx = train_test_split(
                positions,
                train_size=self.split_ratio,
                random_state=seed,
                shuffle=True,
                stratify=stratify,
            )
        except ValueError as e:
            if stratify is not None:
                raise ConfigurationError(f"Stratified split not possible: {e}") from e
            raise

        return [Split(train_index=sorted(int(i) for i in train_idx),
                      test_index=sorted(int(i) for i in test_idx),
                      seed=int(seed))]


class CrossValidationSplitter:
    """K-fold embaralhado; produz `cv_folds` unidades por invocação."""

    name = "cv"

    def __init__(self, *, cv_folds: int = 5):
        if isinstance(cv_folds, bool) or not isinstance(cv_folds, int) or cv_folds < 2:
            raise ConfigurationError(
                "cv_folds must be an int >= 2",
                details={"cv_folds": repr(cv_folds)},
                hint="Para um único split use o splitter `random`.",
            )
        self.cv_folds = cv_folds

    def units_per_invocation(self) -> int:
        return self.cv_folds

    def split(self, data: pd.DataFrame, seed: int) -> List[Split]:
        kf = KFold(n_splits=self.cv_folds, shuffle=True, random_state=seed)
        return [
            Split(
                train_index=[int(i) for i in train_idx],
                test_index=[int(i) for i in test_idx],
                seed=int(seed),
                fold=fold,
            )
            for fold, (train_idx, test_idx) in enumerate(kf.split(np.arange(len(data))), start=1)
        ]


_SPLITTERS = {
    "random": RandomSplitter,
    "cv": CrossValidationSplitter,
}


def build_splitter(spec: Optional[Mapping[str, Any]] = None):
    """Constrói um splitter a partir de `{"type": ..., "params": {...}}` (default: random)."""
    spec = dict(spec or {})
    kind = spec.get("type", "random")
    if kind not in _SPLITTERS:
        raise ConfigurationError(
            f"Unknown splitter: {kind!r}",
            details={"splitter": repr(kind), "allowed": sorted(_SPLITTERS)},
        )
    try:
        return _SPLITTERS[kind](**dict(spec.get("params") or {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid params for splitter '{kind}': {e}") from e
