"""Protocols para extensibilidade da biblioteca.

Define as interfaces que a camada de política consome:
- CacheRegion / AsyncCacheRegion: uma região lógica de cache por tipo de entidade
- CacheStore: resolve regiões pelo nome
- KeyGenerator: geração de chaves de cache
- Serializer: serialização/deserialização de valores
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .context import CallContext


@dataclass(frozen=True)
class CachedValue:
    """Valor encontrado em uma região.

    Distingue um valor armazenado (inclusive falsy) da ausência de entrada.
    """

    value: Any


@runtime_checkable
class CacheRegion(Protocol):
    """Protocol para uma região de cache nomeada.

    Example:
        ```python
        class DictRegion:
            name = "orders.Order"

            def get(self, key):
                return CachedValue(self._data[key]) if key in self._data else None

            def put(self, key, value):
                self._data[key] = value

            def evict(self, key):
                self._data.pop(key, None)

            def clear(self):
                self._data.clear()
        ```
    """

    @property
    def name(self) -> str:
        """Nome estável da região."""
        ...

    def get(self, key: Any) -> CachedValue | None:
        """Busca entrada da região.

        Args:
            key: Chave de cache

        Returns:
            CachedValue se presente, None caso contrário
        """
        ...

    def put(self, key: Any, value: Any) -> None:
        """Armazena valor na região."""
        ...

    def evict(self, key: Any) -> None:
        """Remove uma entrada da região."""
        ...

    def clear(self) -> None:
        """Remove todas as entradas da região."""
        ...


@runtime_checkable
class AsyncCacheRegion(Protocol):
    """Variante assíncrona de CacheRegion.

    Regiões que implementam este protocol são usadas pelos caminhos
    async do orquestrador; as demais são chamadas de forma síncrona.
    """

    async def get_async(self, key: Any) -> CachedValue | None: ...

    async def put_async(self, key: Any, value: Any) -> None: ...

    async def evict_async(self, key: Any) -> None: ...

    async def clear_async(self) -> None: ...


class CacheStore(Protocol):
    """Protocol para resolução de regiões de cache."""

    def resolve_region(self, name: str) -> CacheRegion | None:
        """Resolve região pelo nome.

        Args:
            name: Nome da região (derivado do tipo de entidade)

        Returns:
            Região configurada ou None se não existir
        """
        ...


class KeyGenerator(Protocol):
    """Protocol para geradores de chaves de cache.

    Retornar None sinaliza "sem chave": o chamador executa a função
    diretamente, sem cache.
    """

    def generate_key(self, expression: Any, context: "CallContext") -> Any | None:
        """Gera chave de cache.

        Args:
            expression: Expressão de chave configurada (vazia para chave padrão)
            context: Contexto da chamada interceptada

        Returns:
            Chave de cache ou None

        Raises:
            KeyExpressionError: Se a avaliação de uma expressão explícita falhar
        """
        ...


@runtime_checkable
class Serializer(Protocol):
    """Protocol para serialização de dados.

    Example:
        ```python
        import json

        class JsonSerializer:
            def serialize(self, data: Any) -> bytes:
                return json.dumps(data).encode()

            def deserialize(self, data: bytes) -> Any:
                return json.loads(data.decode())
        ```
    """

    def serialize(self, data: Any) -> bytes:
        """Serializa dados Python para bytes."""
        ...

    def deserialize(self, data: bytes) -> Any:
        """Deserializa bytes para dados Python."""
        ...
