# src/atlas_reasoning/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Atlas Reasoning.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento e a resolução de configuração do motor.

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros estruturais são tratados como falhas fatais
    - Mensagens de erro são claras e direcionadas ao usuário

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção representa falha de raciocínio (essas são valores)

Limites explícitos:
    - Não realiza fallback ou recovery
    - Não depende de Engine ou componentes
"""


class ConfigError(Exception):
    """
    Exceção base para erros relacionados à configuração do Atlas Reasoning.

    Todas as exceções levantadas durante carregamento e resolução de
    configuração devem herdar desta classe.
    """


class DefaultsNotFoundError(ConfigError):
    """
    Exceção levantada quando o arquivo de configuração base (defaults)
    não é encontrado no caminho especificado.

    Decisões arquiteturais:
        - O arquivo de defaults é obrigatório
        - Sem defaults não existe configuração efetiva válida
    """


class UnsupportedConfigFormatError(ConfigError):
    """
    Exceção levantada quando o formato do arquivo de configuração
    não é suportado pelo loader.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)
    """


class InvalidConfigRootTypeError(ConfigError):
    """
    Exceção levantada quando o conteúdo raiz da configuração
    não é um dicionário (`dict`).
    """


class ConfigTypeConflictError(ConfigError):
    """
    Exceção levantada quando ocorre conflito de tipos durante o deep-merge.

    Exemplo de conflito:
        - base:     {"planner": {"depth_bound": 25}}
        - override: {"planner": "bounded"}

    Invariantes:
        - Nenhum merge parcial é produzido em caso de conflito

    Limites explícitos:
        - Não realiza coerção ou conversão de tipos
    """
