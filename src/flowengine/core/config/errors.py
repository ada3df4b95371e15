# src/flowengine/core/config/errors.py
"""
Exceções canônicas da camada de configuração do flowengine.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento e a resolução estrutural de arquivos de configuração.

As exceções aqui definidas representam **violações estruturais
explícitas** do arquivo (existência, formato, tipo raiz, conflito de merge),
e não erros semânticos dos parâmetros de execução; estes últimos são
`ConfigurationError` (ver `flowengine.core.exceptions`).

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de execução de unidade

Limites explícitos:
    - Não executa o controlador
    - Não realiza fallback ou recovery
"""


class ConfigError(Exception):
    """
    Exceção base para erros estruturais de configuração.

    Permite:
        - captura genérica de erros de arquivo de configuração
        - distinção clara entre falhas estruturais e falhas de execução
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - Não existe criação implícita de defaults
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando a extensão do arquivo não é suportada.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    O formato nunca é inferido pelo conteúdo.
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).

    Listas ou escalares no root são inválidos e não são encapsulados.
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"execution": {"params": {"window": 3}}}
        - override: {"execution": {"params": "fast"}}

    Nenhum merge parcial é produzido em caso de conflito.
    """
