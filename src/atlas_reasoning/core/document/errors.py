"""Erros canônicos do documento compilado (Atlas Reasoning).

O documento compilado é a única entrada semântica de uma consulta.
Falhas de carregamento/validação devem produzir erros explícitos e estáveis.
"""


class DocumentError(Exception):
    """Erro base do domínio de documento."""


class DocumentPathMissingError(DocumentError):
    """Nenhum caminho de documento foi informado."""


class DocumentFileNotFoundError(DocumentError):
    """Arquivo de documento não existe no caminho informado."""


class UnsupportedDocumentFormatError(DocumentError):
    """Formato de documento não suportado (v1: YAML/JSON)."""


class DocumentParseError(DocumentError):
    """Falha ao parsear YAML/JSON."""


class DocumentValidationError(DocumentError):
    """Documento não é estruturalmente válido segundo o schema canônico."""
