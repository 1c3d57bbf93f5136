# tests/core/config/test_loader.py
"""
Testes do carregador de configuração (load_config).

Este módulo valida o comportamento do loader responsável por resolver a
configuração efetiva do Atlas Reasoning a partir de:
- um arquivo de defaults (obrigatório; por padrão o `defaults.yaml` empacotado)
- um arquivo local de overrides (opcional)
- overrides em memória (opcional)

Os testes asseguram que:
- a ausência de defaults é tratada como erro estrutural
- a ausência do arquivo local é tolerada
- overrides locais e em memória têm prioridade sobre defaults
- o tipo raiz e o formato do arquivo são validados

Invariantes:
    - O resultado é sempre um dicionário puro
    - Overrides nunca mutam os defaults

Limites explícitos:
    - Não valida semântica de domínio (estratégias, limiares)
    - Não valida hashing da configuração
"""

from pathlib import Path

import pytest

try:
    from atlas_reasoning.core.config.loader import DEFAULTS_PATH, load_config, load_default_config
    from atlas_reasoning.core.config.errors import (
        ConfigTypeConflictError,
        DefaultsNotFoundError,
        InvalidConfigRootTypeError,
        UnsupportedConfigFormatError,
    )
except Exception as e:  # noqa: BLE001
    load_config = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    """
    Garante que o loader de configuração esteja disponível para os testes.

    Falha imediatamente, com mensagem descritiva, quando o módulo canônico
    não pode ser importado; não tenta fallback nem implementação alternativa.
    """
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config loader. Implement:\n"
            "- src/atlas_reasoning/core/config/loader.py (load_config)\n"
            "- src/atlas_reasoning/core/config/errors.py (ConfigError family)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_missing_defaults_raises(tmp_path: Path):
    """
    Verifica que a ausência do arquivo de defaults é tratada como erro fatal.

    Sem defaults não existe configuração efetiva válida; o loader deve
    levantar `DefaultsNotFoundError` em vez de produzir um dicionário vazio.
    """
    _require_imports()
    missing = tmp_path / "defaults.yaml"

    with pytest.raises(DefaultsNotFoundError):
        load_config(defaults_path=str(missing), local_path=None)


def test_missing_local_is_ok(tmp_path: Path, project_like_config_defaults_yaml):
    """
    Verifica que a inexistência do arquivo local não impede o carregamento.

    O arquivo local é opcional; quando ausente, a configuração efetiva é
    exatamente a de defaults.
    """
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    missing_local = tmp_path / "local.yaml"

    out = load_config(defaults_path=str(defaults), local_path=str(missing_local))
    assert out["engine"]["fail_fast"] is True
    assert out["planner"]["strategy"] == "breadth_first"
    assert out["montecarlo"]["seed"] == 42


def test_load_defaults_and_local(tmp_path: Path, project_like_config_defaults_yaml, project_like_config_local_yaml):
    """
    Verifica que overrides locais prevalecem e que chaves não sobrescritas são preservadas.

    Decisões arquiteturais:
        - O merge é recursivo por chave (dict)
        - Valores do arquivo local têm prioridade sobre defaults

    Invariantes:
        - `planner.depth_bound` (não sobrescrito) é preservado
        - `planner.strategy` e `montecarlo.seed` refletem o override local
    """
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")

    out = load_config(defaults_path=str(defaults), local_path=str(local))
    assert out["planner"]["strategy"] == "best_first"
    assert out["planner"]["depth_bound"] == 25
    assert out["montecarlo"]["seed"] == 7
    assert out["montecarlo"]["trials"] == 1000
    assert out["engine"]["fail_fast"] is True


def test_in_memory_overrides_take_priority(tmp_path: Path, project_like_config_defaults_yaml, project_like_config_local_yaml):
    """Overrides em memória prevalecem sobre o arquivo local e sobre defaults."""
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text(project_like_config_defaults_yaml, encoding="utf-8")
    local.write_text(project_like_config_local_yaml, encoding="utf-8")

    out = load_config(
        defaults_path=str(defaults),
        local_path=str(local),
        overrides={"montecarlo": {"seed": 99}},
    )
    assert out["montecarlo"]["seed"] == 99
    assert out["planner"]["strategy"] == "best_first"


def test_packaged_defaults_cover_every_component():
    """
    Verifica que o `defaults.yaml` empacotado declara todas as seções consumidas pelo engine.

    Invariantes:
        - O arquivo empacotado existe
        - Cada componente possui sua seção de configuração
    """
    _require_imports()
    assert DEFAULTS_PATH.exists()

    cfg = load_default_config()
    for section in (
        "engine",
        "inference",
        "csp",
        "planner",
        "scheduler",
        "lp",
        "montecarlo",
        "sensitivity",
        "decision",
        "risks",
    ):
        assert section in cfg, section

    assert cfg["inference"]["max_proof_depth"] == 64
    assert cfg["planner"]["strategy"] == "breadth_first"
    assert cfg["scheduler"]["horizon"] is None
    assert cfg["risks"]["severity"] == {"high": 0.5, "medium": 0.2}


def test_nullable_default_accepts_override():
    """Chaves opcionais (None nos defaults) aceitam override de qualquer tipo."""
    _require_imports()
    cfg = load_config(overrides={"scheduler": {"horizon": 30}, "planner": {"time_budget_s": 2.5}})
    assert cfg["scheduler"]["horizon"] == 30
    assert cfg["planner"]["time_budget_s"] == 2.5


def test_override_type_conflict_raises():
    """Um override que troca dict por escalar é conflito estrutural."""
    _require_imports()
    with pytest.raises(ConfigTypeConflictError):
        load_config(overrides={"planner": "bounded"})


def test_invalid_root_type_raises(tmp_path: Path):
    """
    Verifica que o conteúdo raiz da configuração precisa ser um dicionário.

    Uma lista YAML na raiz é rejeitada com `InvalidConfigRootTypeError`.
    """
    _require_imports()
    defaults = tmp_path / "defaults.yaml"
    defaults.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(InvalidConfigRootTypeError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_unsupported_extension_raises(tmp_path: Path):
    """Formatos fora de YAML/JSON são rejeitados explicitamente."""
    _require_imports()
    defaults = tmp_path / "defaults.toml"
    defaults.write_text("[engine]\nfail_fast = true\n", encoding="utf-8")

    with pytest.raises(UnsupportedConfigFormatError):
        load_config(defaults_path=str(defaults), local_path=None)


def test_json_defaults_are_supported(tmp_path: Path):
    _require_imports()
    defaults = tmp_path / "defaults.json"
    defaults.write_text('{"engine": {"fail_fast": false}}', encoding="utf-8")

    out = load_config(defaults_path=str(defaults))
    assert out == {"engine": {"fail_fast": False}}
