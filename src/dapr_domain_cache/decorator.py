"""Decorators de leitura com cache e de evicção por domínio."""

import inspect
import logging
from collections.abc import Callable, Iterable
from functools import wraps
from typing import Any

from .config import CacheSettings, DomainCacheConfig, DomainCacheEvictConfig, KeyExpression
from .context import CallContext, declared_return_type
from .declarations import DeclarationCatalog
from .metrics import CacheMetrics
from .orchestrator import CacheOrchestrator
from .protocols import CacheStore, KeyGenerator
from .registry import CacheManagedDeclaration, EntityType, GraphRegistry
from .regions import DaprCacheStore

logger = logging.getLogger(__name__)

_UNRESOLVED = object()


class _DomainWrapper:
    """Base dos wrappers: metadados, descriptor protocol e contexto da chamada."""

    def __init__(self, func: Callable[..., Any], orchestrator: CacheOrchestrator) -> None:
        self._func = func
        self._orchestrator = orchestrator
        self._is_async = inspect.iscoroutinefunction(func)
        self._return_type: Any = _UNRESOLVED

        # Preserva metadados da função original
        wraps(func)(self)

    def __get__(self, obj: Any, _objtype: type | None = None) -> "_DomainWrapper | BoundDomainMethod":
        """Descriptor protocol para suporte a métodos."""
        if obj is None:
            return self
        return BoundDomainMethod(self, obj)

    @property
    def orchestrator(self) -> CacheOrchestrator:
        return self._orchestrator

    def _context(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> CallContext:
        # Resolvido na primeira chamada: forward references só existem depois da definição
        if self._return_type is _UNRESOLVED:
            self._return_type = declared_return_type(self._func)
        return CallContext.from_call(self._func, args, kwargs, return_type=self._return_type)


class DomainCacheWrapper(_DomainWrapper):
    """Wrapper de leitura: consulta a região do tipo de entidade retornado."""

    def __init__(self, func: Callable[..., Any], orchestrator: CacheOrchestrator, config: DomainCacheConfig) -> None:
        super().__init__(func, orchestrator)
        self._config = config

    @property
    def config(self) -> DomainCacheConfig:
        return self._config

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if self._is_async:
            return self._call_async(*args, **kwargs)

        outcome = self._orchestrator.handle_read(
            self._context(args, kwargs), self._config, lambda: self._func(*args, **kwargs)
        )
        return outcome.value

    async def _call_async(self, *args: Any, **kwargs: Any) -> Any:
        outcome = await self._orchestrator.handle_read_async(
            self._context(args, kwargs), self._config, lambda: self._func(*args, **kwargs)
        )
        return outcome.value


class DomainCacheEvictWrapper(_DomainWrapper):
    """Wrapper de escrita: invalida o cache depois que a função retorna.

    Se a função levantar exceção, nada é invalidado e a exceção segue
    inalterada.
    """

    def __init__(
        self, func: Callable[..., Any], orchestrator: CacheOrchestrator, config: DomainCacheEvictConfig
    ) -> None:
        super().__init__(func, orchestrator)
        self._config = config

    @property
    def config(self) -> DomainCacheEvictConfig:
        return self._config

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if self._is_async:
            return self._call_async(*args, **kwargs)

        result = self._func(*args, **kwargs)
        self._orchestrator.handle_evict(self._context(args, kwargs), self._config, result)
        return result

    async def _call_async(self, *args: Any, **kwargs: Any) -> Any:
        result = await self._func(*args, **kwargs)
        await self._orchestrator.handle_evict_async(self._context(args, kwargs), self._config, result)
        return result


class BoundDomainMethod:
    """Wrapper para métodos bound (com self/cls)."""

    def __init__(self, wrapper: _DomainWrapper, instance: Any) -> None:
        self._wrapper = wrapper
        self._instance = instance
        self.__name__ = wrapper.__name__
        self.__doc__ = wrapper.__doc__

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Executa o método com a instância bound."""
        return self._wrapper(self._instance, *args, **kwargs)


def domain_cache(
    orchestrator: CacheOrchestrator,
    *,
    domain: str | None = None,
    key: KeyExpression = "",
) -> Callable[[Callable[..., Any]], DomainCacheWrapper]:
    """Decorator de leitura com cache por domínio.

    O tipo de entidade vem da anotação de retorno (``-> Order`` ou
    ``-> list[Order]``); funções sem anotação resolvível são executadas
    sem cache.

    Args:
        orchestrator: Orquestrador compartilhado
        domain: Domínio (default via DAPR_CACHE_DEFAULT_DOMAIN ou "default")
        key: Expressão de chave (vazia para chave padrão)

    Example:
        ```python
        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id: int) -> Order:
            return repository.load(order_id)
        ```
    """
    config = DomainCacheConfig(domain=CacheSettings.resolve_domain(domain), key=key)

    def decorator(fn: Callable[..., Any]) -> DomainCacheWrapper:
        logger.debug(f"Aplicando @domain_cache em {fn.__qualname__} (domínio '{config.domain}')")
        return DomainCacheWrapper(fn, orchestrator, config)

    return decorator


def domain_cache_evict(
    orchestrator: CacheOrchestrator,
    *,
    domain: str | None = None,
    type: EntityType | None = None,
    atomic: bool = False,
    key: KeyExpression = "",
) -> Callable[[Callable[..., Any]], DomainCacheEvictWrapper]:
    """Decorator de evicção após escrita.

    Args:
        orchestrator: Orquestrador compartilhado
        domain: Domínio (default via DAPR_CACHE_DEFAULT_DOMAIN ou "default")
        type: Tipo de entidade explícito (inferido do resultado/argumentos se None)
        atomic: Se True, invalida apenas a chave nomeada ou a própria região
        key: Expressão da chave a remover

    Example:
        ```python
        @domain_cache_evict(orchestrator, domain="billing", key="invoice:{arg0.id}", atomic=True)
        def save_invoice(invoice: Invoice) -> Invoice:
            return repository.save(invoice)
        ```
    """
    config = DomainCacheEvictConfig(domain=CacheSettings.resolve_domain(domain), type=type, atomic=atomic, key=key)

    def decorator(fn: Callable[..., Any]) -> DomainCacheEvictWrapper:
        logger.debug(f"Aplicando @domain_cache_evict em {fn.__qualname__} (domínio '{config.domain}')")
        return DomainCacheEvictWrapper(fn, orchestrator, config)

    return decorator


class ManagedDomainCache:
    """Ponto de entrada que monta registro, store e orquestrador.

    Example:
        ```python
        catalog = DeclarationCatalog()
        ...
        cache = ManagedDomainCache(catalog, store=DaprCacheStore("redis-cache"))

        @cache.cache(domain="billing")
        def get_invoice(invoice_id: int) -> Invoice: ...

        @cache.evict(domain="billing")
        def save_invoice(invoice: Invoice) -> Invoice: ...
        ```
    """

    def __init__(
        self,
        declarations: DeclarationCatalog | GraphRegistry | Iterable[CacheManagedDeclaration],
        store: CacheStore | None = None,
        key_generator: KeyGenerator | None = None,
        metrics: CacheMetrics | None = None,
        default_domain: str | None = None,
    ) -> None:
        """Inicializa o cache gerenciado.

        Args:
            declarations: Catálogo, registro pronto ou declarações
            store: Store de regiões (default: DaprCacheStore com configuração do ambiente)
            key_generator: Gerador de chaves customizado
            metrics: Coletor de métricas
            default_domain: Domínio usado quando o decorator não informa um

        Raises:
            RegistryConfigurationError: Se não houver declarações
        """
        if isinstance(declarations, GraphRegistry):
            registry = declarations
        elif isinstance(declarations, DeclarationCatalog):
            registry = declarations.build_registry()
        else:
            registry = GraphRegistry(declarations)

        self._default_domain = CacheSettings.resolve_domain(default_domain)
        self._orchestrator = CacheOrchestrator(
            registry=registry,
            store=store if store is not None else DaprCacheStore(),
            key_generator=key_generator,
            metrics=metrics,
        )

    @property
    def default_domain(self) -> str:
        return self._default_domain

    @property
    def orchestrator(self) -> CacheOrchestrator:
        return self._orchestrator

    @property
    def registry(self) -> GraphRegistry:
        return self._orchestrator.registry

    @property
    def store(self) -> CacheStore:
        return self._orchestrator.store

    def cache(
        self, *, domain: str | None = None, key: KeyExpression = ""
    ) -> Callable[[Callable[..., Any]], DomainCacheWrapper]:
        """Decorator de leitura usando o orquestrador deste cache."""
        return domain_cache(self._orchestrator, domain=domain or self._default_domain, key=key)

    def evict(
        self,
        *,
        domain: str | None = None,
        type: EntityType | None = None,
        atomic: bool = False,
        key: KeyExpression = "",
    ) -> Callable[[Callable[..., Any]], DomainCacheEvictWrapper]:
        """Decorator de evicção usando o orquestrador deste cache."""
        return domain_cache_evict(
            self._orchestrator, domain=domain or self._default_domain, type=type, atomic=atomic, key=key
        )
