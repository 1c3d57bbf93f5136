# tests/conftest.py
"""
Fixtures compartilhados para testes do Atlas Reasoning.

Este módulo define fixtures reutilizáveis que fornecem:
- configurações mínimas e determinísticas
- documentos compilados reduzidos por componente (inferência, CSP,
  planejamento, agendamento e decisão)
- contexto de consulta controlado (QueryContext)

O objetivo destas fixtures é permitir testes do core e dos componentes
sem depender de:
- filesystem (exceto quando o teste usa `tmp_path` explicitamente)
- variáveis de ambiente
- aleatoriedade não semeada

Decisões arquiteturais:
    - Documentos são dicionários simples (forma já compilada)
    - Dados retornados são determinísticos e isolados (cópia por teste)
    - Imports do core são realizados de forma lazy para melhorar a
      clareza de erros durante falhas

Invariantes:
    - Nenhuma fixture executa consultas
    - Nenhuma fixture realiza I/O
    - Todas as fixtures são seguras para execução em paralelo

Limites explícitos:
    - Não substituir testes de integração
    - Não validar semântica completa dos componentes
"""

from datetime import datetime, timezone

import pytest


# =====================================================
# Config fixtures
# =====================================================

@pytest.fixture
def project_like_config_defaults_yaml() -> str:
    """
    YAML de configuração padrão (defaults) semelhante ao uso real do motor.

    Fornecido como string para evitar I/O implícito; os testes gravam o
    conteúdo em `tmp_path` quando precisam de um arquivo.

    Returns:
        str: Conteúdo YAML representando configuração padrão (defaults).
    """
    return """\
engine:
  fail_fast: true
planner:
  strategy: breadth_first
  depth_bound: 25
montecarlo:
  trials: 1000
  seed: 42
"""


@pytest.fixture
def project_like_config_local_yaml() -> str:
    """
    YAML de configuração local (override) semelhante ao uso real do motor.

    Representa apenas overrides: altera a estratégia do planejador e a
    semente de simulação, preservando o restante dos defaults.

    Returns:
        str: Conteúdo YAML representando configuração local de override.
    """
    return """\
planner:
  strategy: best_first
montecarlo:
  seed: 7
"""


@pytest.fixture
def engine_config() -> dict:
    """
    Overrides mínimos e determinísticos para o `ReasoningEngine`.

    Mantém as simulações curtas (poucas tentativas) e a semente fixa, de
    modo que testes do engine sejam rápidos e reprodutíveis.

    Returns:
        dict: Overrides aplicados sobre o `defaults.yaml` empacotado.
    """
    return {
        "engine": {"fail_fast": True},
        "montecarlo": {"trials": 200, "seed": 42, "n_jobs": 1, "histogram_bins": 10},
    }


# =====================================================
# Query fixtures
# =====================================================

@pytest.fixture
def dummy_ctx(engine_config):
    """
    QueryContext determinístico para testes.

    `query_id` e `created_at` são fixos; a configuração é injetada
    explicitamente via fixture.

    Returns:
        QueryContext: Contexto de consulta isolado e previsível.
    """
    from atlas_reasoning.core.query.context import QueryContext

    return QueryContext(
        query_id="q-test-001",
        created_at=datetime(2026, 1, 16, 0, 0, 0, tzinfo=timezone.utc),
        config=engine_config,
        meta={"source": "pytest"},
    )


# =====================================================
# Document fixtures
# =====================================================

@pytest.fixture
def ancestry_document() -> dict:
    """Fatos de parentesco e regras recursivas de ancestralidade."""
    return {
        "FACTS": ["parent(ana, bia)", "parent(bia, caio)", "parent(caio, davi)"],
        "RULES": [
            "IF parent(?x, ?y) THEN ancestor(?x, ?y)",
            "IF parent(?x, ?y) AND ancestor(?y, ?z) THEN ancestor(?x, ?z)",
        ],
    }


@pytest.fixture
def csp_document() -> dict:
    """CSP pequeno de alocação de stack (rígidas + suaves)."""
    return {
        "VARIABLES": ["frontend", "backend"],
        "DOMAINS": {
            "frontend": ["react", "vue"],
            "backend": ["flask", "fastapi", "django"],
        },
        "CONSTRAINTS": [
            {"name": "no_django_with_vue", "expr": "not (frontend == 'vue' and backend == 'django')"},
        ],
        "SOFT_CONSTRAINTS": [
            {"name": "prefer_vue", "expr": "frontend == 'vue'", "weight": 2},
            {"name": "prefer_fastapi", "expr": "backend == 'fastapi'", "weight": 1},
        ],
    }


@pytest.fixture
def file_planning_document() -> dict:
    """Planejamento trivial: criar um arquivo (plano de uma ação)."""
    return {
        "INITIAL_STATE": ["no_file"],
        "GOAL_STATE": ["has_file"],
        "OPERATORS": {
            "create_file": {
                "pre": ["not has_file"],
                "post": ["has_file", "not no_file"],
            },
            "delete_file": {
                "pre": ["has_file"],
                "post": ["no_file", "not has_file"],
            },
        },
    }


@pytest.fixture
def route_planning_document() -> dict:
    """Rota linear a -> b -> c -> d com operador parametrizado `move`."""
    return {
        "INITIAL_STATE": ["at(a)", "connected(a, b)", "connected(b, c)", "connected(c, d)"],
        "GOAL_STATE": ["at(d)"],
        "OPERATORS": {
            "move": {
                "parameters": ["?from", "?to"],
                "pre": ["at(?from)", "connected(?from, ?to)"],
                "add": ["at(?to)"],
                "delete": ["at(?from)"],
            },
        },
    }


@pytest.fixture
def project_document() -> dict:
    """Rede A(4) -> B(8) e C(12) independente: dois caminhos críticos de 12."""
    return {
        "ACTIVITIES": {
            "A": {"duration": 4},
            "B": {"duration": 8, "predecessors": ["A"]},
            "C": {"duration": 12},
        },
        "OBJECTIVE_FUNCTION": "minimize(makespan)",
    }


@pytest.fixture
def uncertain_project_document() -> dict:
    """Rede com durações incertas (triangular/PERT) para Monte Carlo."""
    return {
        "ACTIVITIES": {
            "design": {"distribution": "triangular(2, 4, 8)"},
            "build": {"distribution": {"type": "pert", "low": 5, "mode": 8, "high": 14}, "predecessors": ["design"]},
            "docs": {"distribution": {"type": "uniform", "low": 3, "high": 6}, "predecessors": ["design"]},
            "release": {"duration": 1, "predecessors": ["build", "docs"]},
        },
    }


@pytest.fixture
def framework_decision_tree() -> dict:
    """Escolha de framework: Flask (EU 7.75) vs FastAPI (EU 7.6)."""
    return {
        "name": "framework",
        "options": {
            "Flask": {
                "probability": 0.9,
                "outcomes": [
                    {"probability": 0.95, "utility": 8},
                    {"probability": 0.05, "utility": 3},
                ],
            },
            "FastAPI": {
                "probability": 0.1,
                "outcomes": [
                    {"probability": 0.8, "utility": 9},
                    {"probability": 0.2, "utility": 2},
                ],
            },
        },
    }


@pytest.fixture
def risk_register() -> list:
    """Registro de riscos com exposições 1.0, 0.5 (empate), 0.5 e 0.05."""
    return [
        {"id": "vendor_delay", "probability": 0.5, "impact": 2.0, "mitigation": "second supplier"},
        {"id": "scope_creep", "probability": 0.5, "impact": 1.0},
        {"id": "key_person", "probability": 0.25, "impact": 2.0, "mitigation": "pairing"},
        {"id": "outage", "probability": 0.1, "impact": 0.5},
    ]
