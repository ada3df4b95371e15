"""
flowengine: controlador de execução adaptativa orientado a convergência.

Decide em tempo de execução quantas unidades independentes de avaliação
(splits) precisam ser executadas até que uma métrica monitorada seja
considerada estável, despachando as unidades em processo ou em batches
paralelos (multicore local ou cluster).
"""

__version__ = "0.1.0"
