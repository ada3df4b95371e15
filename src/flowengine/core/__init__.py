"""
Core do flowengine.

Reúne as responsabilidades transversais do controlador de execução:
    - config     → carregamento, merge e hashing de configuração
    - context    → RunContext (log estruturado e warnings por run)
    - exceptions → exceções tipadas (taxonomia de falhas fatais)
    - errors     → payload canônico de erro, serializável e acionável

O core é determinístico, testável de forma isolada e livre de dependências
de backends de execução.
"""
