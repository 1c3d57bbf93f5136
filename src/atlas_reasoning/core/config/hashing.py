# src/atlas_reasoning/core/config/hashing.py
"""
Identidade de reprodução de uma consulta do Atlas Reasoning.

Cada `QueryResult` carrega dois hashes em `metrics`:
    - `config_hash`: configuração efetiva do engine (estratégia do planejador,
      semente e número de ensaios do Monte Carlo, limites de inferência...)
    - `document_hash`: documento compilado avaliado (ver core/document)

O par identifica uma execução reprodutível: mesma configuração, mesmo
documento e mesma semente produzem as mesmas amostras de simulação e os
mesmos planos.

Ambos usam a mesma serialização canônica (`canonical_json`):
    - chaves ordenadas e separadores compactos
    - UTF-8 sem escape de caracteres não ASCII
    - SHA-256 em hexadecimal (64 caracteres)
"""


import json
import hashlib
from typing import Any, Callable, Dict, Optional


def canonical_json(obj: Any, *, default: Optional[Callable[[Any], Any]] = None) -> str:
    """Serialização JSON canônica compartilhada pelos hashes de configuração e documento."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=default,
    )


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Hash da configuração efetiva do engine.

    Args:
        config (Dict[str, Any]): Configuração efetiva (defaults + local + overrides).

    Returns:
        str: SHA-256 hexadecimal do JSON canônico.

    Raises:
        TypeError: Se a configuração não for um dicionário ou contiver valores
            não serializáveis em JSON (a configuração precisa ser reprodutível
            a partir de YAML).
    """
    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )
    return sha256_hex(canonical_json(config))
