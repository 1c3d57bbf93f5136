# src/atlas_reasoning/core/config/__init__.py

"""
Camada de configuração do Atlas Reasoning.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar e identificar a configuração efetiva do motor de raciocínio
(limites de busca, estratégias padrão, sementes de simulação, limiares).

A configuração no Atlas Reasoning é:
    - declarativa
    - determinística
    - separada do documento compilado

Responsabilidades do pacote:
    - Carregamento de arquivos de configuração (defaults empacotados + overrides locais)
    - Resolução de configuração final via deep-merge determinístico
    - Geração de hash canônico para rastreabilidade

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - Conflitos estruturais são tratados como erro

Limites explícitos:
    - Não valida semântica de domínio
    - Não executa consultas
    - Não interage com componentes de raciocínio diretamente

Este pacote existe para garantir previsibilidade e reprodutibilidade
na resolução de configuração.
"""

from .errors import (  # noqa: F401
    ConfigError,
    ConfigTypeConflictError,
    DefaultsNotFoundError,
    InvalidConfigRootTypeError,
    UnsupportedConfigFormatError,
)
from .hashing import compute_config_hash  # noqa: F401
from .loader import DEFAULTS_PATH, load_config, load_default_config  # noqa: F401
from .merge import deep_merge  # noqa: F401
