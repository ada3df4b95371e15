# src/flowengine/core/config/hashing.py
"""
Hashing canônico de configuração do flowengine.

O hash gerado representa a **identidade estrutural** dos parâmetros de uma
execução e é registrado no `ExecutionOutput` para rastreabilidade e auditoria
de reprodutibilidade.

Política de hashing (v1):
    - Serialização JSON canônica (chaves ordenadas, separadores compactos)
    - Codificação UTF-8
    - SHA-256
    - Callables são representados pelo nome qualificado
      (`module:qualname`), pois não possuem forma JSON

Invariantes:
    - Parâmetros estruturalmente equivalentes produzem o mesmo hash
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
"""

import hashlib
import json
from typing import Any, Dict


def callable_name(fn: Any) -> str:
    """Nome estável de um callable para fins de serialização."""
    module = getattr(fn, "__module__", None) or "?"
    qualname = getattr(fn, "__qualname__", None) or type(fn).__qualname__
    return f"{module}:{qualname}"


def _canonical_default(obj: Any) -> Any:
    if callable(obj):
        return callable_name(obj)
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    # escalares numpy
    if hasattr(obj, "item") and hasattr(obj, "dtype"):
        return obj.item()
    # enums e outros objetos simples
    value = getattr(obj, "value", None)
    if value is not None:
        return value
    return repr(obj)


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico da configuração efetiva.

    Args:
        config (Dict[str, Any]): Configuração ou parâmetros resolvidos.

    Returns:
        str: Hash SHA-256 hexadecimal.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_canonical_default,
    )
    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()
