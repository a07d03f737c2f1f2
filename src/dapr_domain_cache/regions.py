"""Regiões de cache: implementação em memória e sobre o Dapr State Store."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from threading import Lock
from typing import Any
from urllib.parse import quote

from .backend import DaprStateBackend
from .config import CacheSettings
from .protocols import CachedValue, Serializer
from .serializer import PickleSerializer

logger = logging.getLogger(__name__)


class InMemoryCacheRegion:
    """Região em memória, thread-safe.

    Útil para testes e para processos únicos. Também expõe a variante
    assíncrona, que apenas delega para os métodos síncronos.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._data: dict[Any, Any] = {}
        self._lock = Lock()

    @property
    def name(self) -> str:
        return self._name

    def get(self, key: Any) -> CachedValue | None:
        with self._lock:
            if key not in self._data:
                return None
            return CachedValue(self._data[key])

    def put(self, key: Any, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def evict(self, key: Any) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    async def get_async(self, key: Any) -> CachedValue | None:
        return self.get(key)

    async def put_async(self, key: Any, value: Any) -> None:
        self.put(key, value)

    async def evict_async(self, key: Any) -> None:
        self.evict(key)

    async def clear_async(self) -> None:
        self.clear()

    def keys(self) -> list[Any]:
        """Chaves presentes na região."""
        with self._lock:
            return list(self._data)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: Any) -> bool:
        with self._lock:
            return key in self._data


class _RegionStore(ABC):
    """Resolução de regiões com lista opcional de regiões permitidas."""

    def __init__(self, region_names: Iterable[str] | None = None) -> None:
        self._allowed = frozenset(region_names) if region_names is not None else None
        self._regions: dict[str, Any] = {}
        self._lock = Lock()

    @abstractmethod
    def _create_region(self, name: str) -> Any:
        """Cria a região física com o nome informado."""

    def resolve_region(self, name: str) -> Any | None:
        """Resolve a região pelo nome; regiões fora da lista permitida não existem."""
        if self._allowed is not None and name not in self._allowed:
            return None

        region = self._regions.get(name)
        if region is None:
            with self._lock:
                region = self._regions.get(name)
                if region is None:
                    region = self._regions[name] = self._create_region(name)
                    logger.debug(f"Região criada: {name}")
        return region

    @property
    def region_names(self) -> tuple[str, ...]:
        """Regiões já resolvidas ao menos uma vez."""
        return tuple(self._regions)


class InMemoryCacheStore(_RegionStore):
    """Store em memória; cria regiões sob demanda.

    Example:
        ```python
        store = InMemoryCacheStore()
        region = store.resolve_region("billing.Invoice")
        region.put("invoice:42", invoice)
        ```
    """

    def _create_region(self, name: str) -> InMemoryCacheRegion:
        return InMemoryCacheRegion(name)


class DaprCacheRegion:
    """Região sobre o Dapr State Store.

    O Dapr não oferece remoção por prefixo, então cada região mantém um
    contador de geração: as entradas são gravadas em
    ``{prefix}:{region}:{geração}:{chave}`` e ``clear()`` apenas incrementa
    a geração, tornando as entradas anteriores inalcançáveis com uma
    única escrita.
    """

    GENERATION_SUFFIX = "__generation__"

    def __init__(
        self,
        name: str,
        backend: DaprStateBackend,
        serializer: Serializer | None = None,
        key_prefix: str | None = None,
    ) -> None:
        self._name = name
        self._backend = backend
        self._serializer = serializer or PickleSerializer()
        self._prefix = CacheSettings.resolve_key_prefix(key_prefix)

    @property
    def name(self) -> str:
        return self._name

    @property
    def generation_key(self) -> str:
        """Chave do contador de geração no state store."""
        return f"{self._prefix}:{self._name}:{self.GENERATION_SUFFIX}"

    def entry_key(self, key: Any, generation: int) -> str:
        """Chave física de uma entrada na geração informada.

        Chaves que não são str levam o nome do tipo (``int!42``), de modo
        que ``42`` e ``"42"`` ocupam entradas distintas. Em chaves str o
        ``!`` é sempre codificado, então as duas formas nunca colidem.
        """
        encoded = quote(str(key), safe=":")
        if not isinstance(key, str):
            encoded = f"{quote(type(key).__qualname__, safe='')}!{encoded}"
        return f"{self._prefix}:{self._name}:{generation}:{encoded}"

    def _parse_generation(self, raw: bytes | None) -> int:
        if not raw:
            return 0
        try:
            return int(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            logger.warning(f"Geração inválida na região {self._name}: {raw!r}; assumindo 0")
            return 0

    # ========== Métodos Síncronos ==========

    def _generation(self) -> int:
        return self._parse_generation(self._backend.get(self.generation_key))

    def get(self, key: Any) -> CachedValue | None:
        raw = self._backend.get(self.entry_key(key, self._generation()))
        if raw is None:
            return None
        return CachedValue(self._serializer.deserialize(raw))

    def put(self, key: Any, value: Any) -> None:
        self._backend.set(self.entry_key(key, self._generation()), self._serializer.serialize(value))

    def evict(self, key: Any) -> None:
        self._backend.delete(self.entry_key(key, self._generation()))

    def clear(self) -> None:
        next_generation = self._generation() + 1
        self._backend.set(self.generation_key, str(next_generation).encode("utf-8"))
        logger.debug(f"Região {self._name} avançou para geração {next_generation}")

    # ========== Métodos Assíncronos ==========

    async def _generation_async(self) -> int:
        return self._parse_generation(await self._backend.get_async(self.generation_key))

    async def get_async(self, key: Any) -> CachedValue | None:
        raw = await self._backend.get_async(self.entry_key(key, await self._generation_async()))
        if raw is None:
            return None
        return CachedValue(self._serializer.deserialize(raw))

    async def put_async(self, key: Any, value: Any) -> None:
        entry_key = self.entry_key(key, await self._generation_async())
        await self._backend.set_async(entry_key, self._serializer.serialize(value))

    async def evict_async(self, key: Any) -> None:
        await self._backend.delete_async(self.entry_key(key, await self._generation_async()))

    async def clear_async(self) -> None:
        next_generation = await self._generation_async() + 1
        await self._backend.set_async(self.generation_key, str(next_generation).encode("utf-8"))
        logger.debug(f"Região {self._name} avançou para geração {next_generation}")


class DaprCacheStore(_RegionStore):
    """Store de regiões sobre um único state store Dapr.

    Args:
        store_name: Nome do state store (default via DAPR_CACHE_DEFAULT_STORE_NAME ou "cache")
        backend: Backend já construído (ignora store_name)
        serializer: Serializer das entradas (default: PickleSerializer)
        key_prefix: Prefixo das chaves físicas
        region_names: Regiões permitidas; None permite qualquer região
    """

    def __init__(
        self,
        store_name: str | None = None,
        backend: DaprStateBackend | None = None,
        serializer: Serializer | None = None,
        key_prefix: str | None = None,
        region_names: Iterable[str] | None = None,
    ) -> None:
        super().__init__(region_names)
        self._backend = backend or DaprStateBackend(CacheSettings.resolve_store_name(store_name))
        self._serializer = serializer or PickleSerializer()
        self._key_prefix = CacheSettings.resolve_key_prefix(key_prefix)

    @property
    def backend(self) -> DaprStateBackend:
        return self._backend

    def _create_region(self, name: str) -> DaprCacheRegion:
        return DaprCacheRegion(name, self._backend, self._serializer, self._key_prefix)

    def close(self) -> None:
        self._backend.close()

    async def aclose(self) -> None:
        await self._backend.aclose()

    def __enter__(self) -> "DaprCacheStore":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    async def __aenter__(self) -> "DaprCacheStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
