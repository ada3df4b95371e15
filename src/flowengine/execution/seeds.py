"""
Sequenciador de seeds do controlador adaptativo.

Para a iteração `i` (1-indexada) e tamanho de batch `k`, as seeds são os `k`
inteiros consecutivos `base_seed + (i-1)*k + 1 .. base_seed + i*k`.
Consequências:
    - seeds nunca se repetem entre iterações nem entre membros de um batch
    - uma run com o mesmo `base_seed` é reproduzível

As seeds são repassadas a numpy / scikit-learn (`random_state`), que aceitam
apenas inteiros em `[0, 2**32 - 1]`; valores fora dessa faixa são rejeitados
antes de qualquer execução.
"""

from __future__ import annotations

from typing import List

from flowengine.core.exceptions import ConfigurationError

SEED_MIN = 0
SEED_MAX = 2**32 - 1


def _check_range(seed: int, *, what: str) -> None:
    if seed < SEED_MIN or seed > SEED_MAX:
        raise ConfigurationError(
            f"{what} out of seed range [{SEED_MIN}, {SEED_MAX}]: {seed}",
            details={"seed": seed, "min": SEED_MIN, "max": SEED_MAX},
            hint="Reduza seed_base ou max_splits.",
        )


def next_seeds(base_seed: int, iteration: int, batch_size: int) -> List[int]:
    """Seeds da iteração `iteration` (1-indexada) para um batch de `batch_size`."""
    if isinstance(base_seed, bool) or not isinstance(base_seed, int):
        raise ConfigurationError("seed_base must be an int", details={"seed_base": repr(base_seed)})
    if iteration < 1:
        raise ValueError("iteration is 1-indexed")
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    first = base_seed + (iteration - 1) * batch_size + 1
    last = base_seed + iteration * batch_size
    _check_range(first, what="First seed")
    _check_range(last, what="Last seed")
    return list(range(first, last + 1))


def check_seed_budget(base_seed: int, max_units: int) -> None:
    """Garante, antes do loop, que todas as seeds possíveis da run cabem na faixa."""
    if isinstance(base_seed, bool) or not isinstance(base_seed, int):
        raise ConfigurationError("seed_base must be an int", details={"seed_base": repr(base_seed)})
    _check_range(base_seed + 1, what="First seed")
    _check_range(base_seed + max_units, what="Last seed")
