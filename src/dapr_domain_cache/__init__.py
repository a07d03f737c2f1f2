"""dapr-domain-cache: cache por domínio com invalidação pelo grafo de dependências.

Entidades cacheáveis são agrupadas em domínios e ligadas por arestas de
dependência. Leituras usam read-through na região do tipo de entidade
retornado; escritas invalidam uma chave, a região inteira ou todas as
regiões alcançáveis pelo grafo do domínio.

Uso básico:
    ```python
    from dapr_domain_cache import DaprCacheStore, DeclarationCatalog, ManagedDomainCache

    catalog = DeclarationCatalog()

    @catalog.cache_managed(domain="billing", dependants=["LineItem"])
    class Invoice: ...

    @catalog.cache_managed(domain="billing")
    class LineItem: ...

    cache = ManagedDomainCache(catalog, store=DaprCacheStore("cache"))

    @cache.cache(domain="billing")
    def get_invoice(invoice_id: int) -> Invoice:
        return repository.load(invoice_id)

    @cache.evict(domain="billing")
    def save_invoice(invoice: Invoice) -> Invoice:
        return repository.save(invoice)
    ```
"""

__version__ = "0.1.0"

# Backend
from .backend import DaprStateBackend

# Configuração
from .config import CacheSettings, DomainCacheConfig, DomainCacheEvictConfig, ValidationError

# Contexto de chamada
from .context import CallContext, region_name_for, resolve_entity_type, runtime_entity_type

# Declarações
from .declarations import DeclarationCatalog

# Decorators
from .decorator import (
    BoundDomainMethod,
    DomainCacheEvictWrapper,
    DomainCacheWrapper,
    ManagedDomainCache,
    domain_cache,
    domain_cache_evict,
)

# Exceções
from .exceptions import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    KeyExpressionError,
    RegistryConfigurationError,
)

# Geração de chaves
from .key_builder import DefaultKeyGenerator

# Métricas
from .metrics import CacheMetrics, CacheStats, InMemoryMetrics, NoOpMetrics, OpenTelemetryMetrics, RegionStats

# Orquestração
from .orchestrator import CacheOrchestrator, EvictionOutcome, ReadOutcome

# Protocols (para extensibilidade)
from .protocols import AsyncCacheRegion, CachedValue, CacheRegion, CacheStore, KeyGenerator
from .protocols import Serializer as SerializerProtocol

# Regiões
from .regions import DaprCacheRegion, DaprCacheStore, InMemoryCacheRegion, InMemoryCacheStore

# Registro de grafos
from .registry import DEFAULT_DOMAIN, CacheManagedDeclaration, EntityTypeGraph, GraphRegistry

# Serialização
from .serializer import MsgPackSerializer, PickleSerializer

__all__ = [
    # Registro de grafos
    "DEFAULT_DOMAIN",
    "CacheManagedDeclaration",
    "EntityTypeGraph",
    "GraphRegistry",
    "DeclarationCatalog",
    # Orquestração
    "CacheOrchestrator",
    "ReadOutcome",
    "EvictionOutcome",
    "CallContext",
    "resolve_entity_type",
    "runtime_entity_type",
    "region_name_for",
    # Decorators
    "domain_cache",
    "domain_cache_evict",
    "DomainCacheWrapper",
    "DomainCacheEvictWrapper",
    "BoundDomainMethod",
    "ManagedDomainCache",
    # Configuração
    "CacheSettings",
    "DomainCacheConfig",
    "DomainCacheEvictConfig",
    "ValidationError",
    # Geração de chaves
    "DefaultKeyGenerator",
    "KeyGenerator",
    # Regiões e backend
    "CacheRegion",
    "AsyncCacheRegion",
    "CacheStore",
    "CachedValue",
    "InMemoryCacheRegion",
    "InMemoryCacheStore",
    "DaprCacheRegion",
    "DaprCacheStore",
    "DaprStateBackend",
    # Serialização
    "MsgPackSerializer",
    "PickleSerializer",
    "SerializerProtocol",
    # Métricas
    "CacheMetrics",
    "CacheStats",
    "RegionStats",
    "NoOpMetrics",
    "InMemoryMetrics",
    "OpenTelemetryMetrics",
    # Exceções
    "CacheError",
    "CacheConnectionError",
    "CacheSerializationError",
    "CacheKeyError",
    "KeyExpressionError",
    "RegistryConfigurationError",
]
