"""Configuração do cache por domínio.

Duas superfícies de configuração por chamada (leitura e evicção) e a
resolução de valores padrão a partir de variáveis de ambiente, com a
precedência:

1. Parâmetro explícito (maior precedência)
2. Variável de ambiente
3. Valor padrão (menor precedência)
"""

import os
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .registry import DEFAULT_DOMAIN, EntityType

KeyExpression = str | Callable[..., Any]


class ValidationError(ValueError):
    """Erro de validação de parâmetros de configuração."""

    pass


@dataclass(frozen=True)
class DomainCacheConfig:
    """Configuração de leitura com cache.

    Attributes:
        domain: Domínio do grafo de entidades
        key: Expressão de chave (vazia para chave padrão)
    """

    domain: str = DEFAULT_DOMAIN
    key: KeyExpression = ""

    def __post_init__(self) -> None:
        CacheSettings.validate_domain(self.domain)


@dataclass(frozen=True)
class DomainCacheEvictConfig:
    """Configuração de evicção após escrita.

    Attributes:
        domain: Domínio do grafo de entidades
        type: Tipo de entidade explícito (None para inferir)
        atomic: Se True, não propaga a evicção pelo grafo
        key: Expressão da chave a remover dentro da região
    """

    domain: str = DEFAULT_DOMAIN
    type: EntityType | None = None
    atomic: bool = False
    key: KeyExpression = ""

    def __post_init__(self) -> None:
        CacheSettings.validate_domain(self.domain)


class CacheSettings:
    """Resolução de configuração global com suporte a variáveis de ambiente."""

    # Nomes das variáveis de ambiente
    ENV_DEFAULT_STORE_NAME = "DAPR_CACHE_DEFAULT_STORE_NAME"
    ENV_DEFAULT_DOMAIN = "DAPR_CACHE_DEFAULT_DOMAIN"
    ENV_KEY_PREFIX = "DAPR_CACHE_KEY_PREFIX"
    ENV_DAPR_HTTP_HOST = "DAPR_HTTP_HOST"
    ENV_DAPR_HTTP_PORT = "DAPR_HTTP_PORT"

    # Valores padrão
    DEFAULT_STORE_NAME = "cache"
    DEFAULT_DOMAIN = "default"
    DEFAULT_KEY_PREFIX = "domain-cache"
    DEFAULT_DAPR_HTTP_HOST = "127.0.0.1"
    DEFAULT_DAPR_HTTP_PORT = 3500

    @classmethod
    def resolve_store_name(cls, explicit_value: str | None = None) -> str:
        """Resolve nome do state store Dapr."""
        value = cls._resolve(explicit_value, cls.ENV_DEFAULT_STORE_NAME, cls.DEFAULT_STORE_NAME)
        if not value.strip():
            raise ValidationError("store_name não pode ser vazio")
        return value

    @classmethod
    def resolve_domain(cls, explicit_value: str | None = None) -> str:
        """Resolve domínio padrão."""
        value = cls._resolve(explicit_value, cls.ENV_DEFAULT_DOMAIN, cls.DEFAULT_DOMAIN)
        cls.validate_domain(value)
        return value

    @classmethod
    def resolve_key_prefix(cls, explicit_value: str | None = None) -> str:
        """Resolve prefixo das chaves gravadas no state store."""
        value = cls._resolve(explicit_value, cls.ENV_KEY_PREFIX, cls.DEFAULT_KEY_PREFIX)
        if not value.strip():
            raise ValidationError("key_prefix não pode ser vazio")
        return value

    @classmethod
    def dapr_url(cls) -> str:
        """URL base do sidecar Dapr."""
        host = os.getenv(cls.ENV_DAPR_HTTP_HOST, cls.DEFAULT_DAPR_HTTP_HOST)
        port = os.getenv(cls.ENV_DAPR_HTTP_PORT, str(cls.DEFAULT_DAPR_HTTP_PORT))
        return f"http://{host}:{port}"

    @staticmethod
    def validate_domain(domain: str) -> None:
        """Valida nome de domínio.

        Raises:
            ValidationError: Se o domínio não for uma string não vazia
        """
        if not isinstance(domain, str):
            raise ValidationError(f"domain deve ser str, recebido {type(domain).__name__}")
        if not domain.strip():
            raise ValidationError("domain não pode ser vazio")

    @staticmethod
    def _resolve(explicit_value: str | None, env_name: str, default: str) -> str:
        if explicit_value is not None:
            return explicit_value

        env_value = os.getenv(env_name)
        if env_value:
            return env_value

        return default
