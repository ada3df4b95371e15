"""Primitivas comuns aos backends paralelos (job outcome, execução de unidade, registry)."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

import numpy as np

from flowengine.execution.types import UnitConfig

RNG_MODULUS = 2**32


@dataclass(frozen=True)
class JobOutcome:
    """
    Resultado de um job: sucesso com `result` ou falha com tipo/mensagem.

    A identidade job ↔ unidade é carregada explicitamente em `unit_id`,
    independente da ordem de chegada.
    """

    unit_id: str
    seed: int
    ok: bool
    result: Any = None
    error_type: Optional[str] = None
    error: Optional[str] = None

    def failure_details(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "seed": self.seed,
            "error_type": self.error_type,
            "error": self.error,
        }


def job_rng_seed(seed: Optional[int], iteration: int, position: int) -> Optional[int]:
    """
    Seed do RNG global do worker.

    Cada iteração tem seed de registry `seed + iteration`; cada job recebe
    `seed de registry + posição no batch` (1-indexada).
    """
    if seed is None:
        return None
    return (int(seed) + iteration + position) % RNG_MODULUS


def run_unit(evaluator: Any, unit: UnitConfig, rng_seed: Optional[int] = None) -> JobOutcome:
    """
    Executa uma unidade dentro de um worker.

    Falhas do evaluator viram `JobOutcome(ok=False)`; o dispatcher agrega
    todas e aborta o batch.
    """
    if rng_seed is not None:
        np.random.seed(rng_seed)
    try:
        result = evaluator.evaluate(dict(unit.config), unit.seed)
    except Exception as e:
        return JobOutcome(
            unit_id=unit.unit_id,
            seed=unit.seed,
            ok=False,
            error_type=type(e).__name__,
            error=str(e),
        )
    return JobOutcome(unit_id=unit.unit_id, seed=unit.seed, ok=True, result=result)


def reset_dir(path: Union[str, Path]) -> Path:
    """Apaga e recria um diretório do registry."""
    p = Path(path)
    if p.exists():
        shutil.rmtree(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def remove_dir(path: Union[str, Path]) -> None:
    p = Path(path)
    if p.exists():
        shutil.rmtree(p)


def iteration_dir(registry_folder: Union[str, Path], iteration: int, attempt: int = 0) -> Path:
    base = Path(registry_folder) / f"iter_{iteration}"
    return base if attempt == 0 else base / f"attempt_{attempt}"
