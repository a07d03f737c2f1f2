"""Exceções do dapr-domain-cache."""


class CacheError(Exception):
    """Erro base para operações de cache."""

    def __init__(self, message: str, key: str | None = None) -> None:
        self.key = key
        super().__init__(message)


class CacheConnectionError(CacheError):
    """Erro de conexão com o sidecar Dapr."""

    pass


class CacheSerializationError(CacheError):
    """Erro de serialização/deserialização de dados."""

    pass


class CacheKeyError(CacheError):
    """Erro relacionado à chave de cache (vazia, inválida, etc.)."""

    pass


class KeyExpressionError(CacheError):
    """Falha ao avaliar uma expressão de chave configurada explicitamente.

    É o único erro que atravessa a camada de cache: indica um defeito
    de configuração, não uma condição de runtime.
    """

    def __init__(self, message: str, expression: str | None = None) -> None:
        self.expression = expression
        super().__init__(message)


class RegistryConfigurationError(CacheError):
    """Declarações de entidades ausentes ou inválidas na inicialização."""

    pass
