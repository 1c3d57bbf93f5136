"""Loader canônico do documento compilado (YAML/JSON).

Notas:
- YAML é preferencial, JSON é alternativo.
- O formato é inferido pela extensão do arquivo.
- Este loader lê o documento *já compilado* (mapping de seções); a sintaxe
  híbrida de origem não é interpretada aqui.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import (
    DocumentFileNotFoundError,
    DocumentParseError,
    DocumentPathMissingError,
    UnsupportedDocumentFormatError,
)
from .schema import CompiledDocument, validate_document


def load_document(*, path: Optional[Union[str, Path]]) -> Dict[str, Any]:
    """Carrega o documento compilado a partir de YAML/JSON.

    Args:
        path: caminho para o arquivo do documento.

    Raises:
        DocumentPathMissingError: se path estiver ausente.
        DocumentFileNotFoundError: se arquivo não existir.
        UnsupportedDocumentFormatError: se extensão não suportada.
        DocumentParseError: se parsing falhar.
    """
    if not path or not str(path).strip():
        raise DocumentPathMissingError("document path is required")

    p = Path(path)
    if not p.exists():
        raise DocumentFileNotFoundError(f"document file not found: {p}")

    suffix = p.suffix.lower()
    raw = p.read_text(encoding="utf-8")

    try:
        if suffix in {".yml", ".yaml"}:
            data = yaml.safe_load(raw)
        elif suffix == ".json":
            data = json.loads(raw)
        else:
            raise UnsupportedDocumentFormatError(f"unsupported document format: {suffix}")
    except UnsupportedDocumentFormatError:
        raise
    except Exception as e:
        raise DocumentParseError(str(e) or "failed to parse document") from e

    if data is None:
        # YAML vazio -> None
        raise DocumentParseError("document file is empty")

    if not isinstance(data, dict):
        raise DocumentParseError("document root must be a mapping/dict")

    return data


def coerce_document(source: Union[CompiledDocument, Mapping[str, Any], str, Path]) -> CompiledDocument:
    """Aceita CompiledDocument, mapping de seções ou caminho de arquivo."""
    if isinstance(source, CompiledDocument):
        return source
    if isinstance(source, (str, Path)):
        return validate_document(load_document(path=source))
    return validate_document(source)
