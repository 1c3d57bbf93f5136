"""Núcleo do Atlas Reasoning: configuração, documento compilado, consulta e engine."""
