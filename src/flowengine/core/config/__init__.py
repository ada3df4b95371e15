"""
Camada de configuração do flowengine.

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Resolução de parâmetros de execução contra defaults (`merge_with_defaults`)
    - Geração de hash canônico para rastreabilidade

Limites explícitos:
    - Não valida semântica dos parâmetros de execução
    - Não executa o controlador
"""

from .errors import (
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash
from .loader import load_config
from .merge import deep_merge, merge_with_defaults

__all__ = [
    "ConfigError",
    "ConfigTypeConflictError",
    "DefaultsNotFoundError",
    "InvalidConfigRootTypeError",
    "UnsupportedConfigFormatError",
    "compute_config_hash",
    "deep_merge",
    "load_config",
    "merge_with_defaults",
]
