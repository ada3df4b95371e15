"""
Avaliações do workflow de referência.

Cada avaliação recebe um `EvalInput` (alvo, predições e dados de teste) e
retorna um dict `{nome_da_métrica: float}`. O resultado da unidade agrega as
avaliações por chave (`metrics[eval_key][metric_name]`), que é exatamente o
caminho lido pelo controlador (`metric_source`, `metric_name`).

    - eval_mse               → mse
    - eval_summarystats      → estatísticas descritivas das predições
    - eval_statisticalparity → spd por atributo protegido binário
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List

import numpy as np
import pandas as pd
from sklearn.metrics import mean_squared_error

from flowengine.core.exceptions import ConfigurationError


@dataclass(frozen=True)
class EvalInput:
    y_true: np.ndarray
    predictions: np.ndarray
    test_data: pd.DataFrame
    protected_attributes: List[str] = field(default_factory=list)


def eval_mse(data: EvalInput) -> Dict[str, float]:
    return {"mse": float(mean_squared_error(data.y_true, data.predictions))}


def eval_summarystats(data: EvalInput) -> Dict[str, float]:
    """Estatísticas das predições (sd/var amostrais; skewness/kurtosis via pandas)."""
    p = pd.Series(np.asarray(data.predictions, dtype=float))
    q25 = float(p.quantile(0.25))
    q75 = float(p.quantile(0.75))
    return {
        "mean": float(p.mean()),
        "median": float(p.median()),
        "sd": float(p.std(ddof=1)),
        "var": float(p.var(ddof=1)),
        "min": float(p.min()),
        "max": float(p.max()),
        "quantile_25": q25,
        "quantile_75": q75,
        "iqr": q75 - q25,
        "skewness": float(p.skew()),
        "kurtosis": float(p.kurt()),
        "range": float(p.max() - p.min()),
    }


def eval_statisticalparity(data: EvalInput) -> Dict[str, float]:
    """
    Statistical parity difference por atributo protegido.

    `spd_<attr> = |média das predições no grupo A − média no grupo B|`;
    `spd` é o maior valor entre os atributos.

    Raises:
        ConfigurationError: nenhum atributo informado, atributo ausente nos
            dados de teste ou atributo não binário.
    """
    attrs = list(data.protected_attributes)
    if not attrs:
        raise ConfigurationError("eval_statisticalparity requires protected_attributes")

    missing = [a for a in attrs if a not in data.test_data.columns]
    if missing:
        raise ConfigurationError(
            f"Missing protected attributes: {', '.join(missing)}",
            details={"missing": missing},
        )

    frame = data.test_data[attrs].reset_index(drop=True).copy()
    frame["__pred__"] = np.asarray(data.predictions, dtype=float)

    non_binary = [a for a in attrs if frame[a].nunique(dropna=False) != 2]
    if non_binary:
        raise ConfigurationError(
            f"Non-binary protected attributes: {', '.join(non_binary)}",
            details={"non_binary": non_binary},
        )

    out: Dict[str, float] = {}
    for attr in attrs:
        means = frame.groupby(attr, sort=True)["__pred__"].mean()
        out[f"spd_{attr}"] = float(abs(means.iloc[0] - means.iloc[1]))
    out["spd"] = max(out.values())
    return out


EVALUATIONS: Dict[str, Callable[[EvalInput], Dict[str, float]]] = {
    "eval_mse": eval_mse,
    "eval_summarystats": eval_summarystats,
    "eval_statisticalparity": eval_statisticalparity,
}


def run_evaluations(keys: List[str], data: EvalInput) -> Dict[str, Dict[str, float]]:
    unknown = [k for k in keys if k not in EVALUATIONS]
    if unknown:
        raise ConfigurationError(
            f"Unknown evaluation(s): {', '.join(unknown)}",
            details={"unknown": unknown, "allowed": sorted(EVALUATIONS)},
        )
    return {k: EVALUATIONS[k](data) for k in keys}
