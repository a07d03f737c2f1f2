"""
Cache orchestrator coordinating read-through and write-path eviction.

Decide quais regiões tocar e quando: na leitura, classifica o tipo de
entidade produzido pela chamada antes de consultar ou gravar a região;
na escrita, resolve o tipo a invalidar e remove uma chave, limpa a
região ou propaga a limpeza por todo o fecho do grafo do domínio.

Problemas da camada de cache nunca mudam o resultado da chamada: tipo
não resolvido, domínio desconhecido, região ausente ou falha do backend
degradam para execução direta. A única exceção propagada é a falha de
uma expressão de chave configurada explicitamente.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .config import DomainCacheConfig, DomainCacheEvictConfig
from .context import (
    CallContext,
    is_subtype,
    region_name_for,
    resolve_entity_type,
    runtime_entity_type,
)
from .key_builder import DefaultKeyGenerator
from .metrics import (
    SKIP_EMPTY_RESULT,
    SKIP_NO_KEY,
    SKIP_NO_REGION,
    SKIP_NOT_CACHEABLE,
    SKIP_TYPE_MISMATCH,
    CacheMetrics,
    NoOpMetrics,
)
from .protocols import AsyncCacheRegion, CachedValue, CacheRegion, CacheStore, KeyGenerator
from .registry import EntityType, GraphRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReadOutcome:
    """Resultado de uma leitura orquestrada.

    Attributes:
        value: Valor retornado ao chamador
        proceeded: True se a função original foi executada
    """

    value: Any
    proceeded: bool


@dataclass(frozen=True)
class EvictionOutcome:
    """Resumo de uma evicção, apenas informativo.

    Attributes:
        entity_type: Tipo resolvido para evicção (None se nenhum)
        evicted_key: Chave removida pela expressão nomeada (None se nenhuma)
        cleared_regions: Nomes das regiões limpas
    """

    entity_type: EntityType | None = None
    evicted_key: Any = None
    cleared_regions: tuple[str, ...] = ()

    @property
    def performed(self) -> bool:
        return self.evicted_key is not None or bool(self.cleared_regions)


@dataclass(frozen=True)
class _ReadPlan:
    entity_type: EntityType
    region: CacheRegion
    key: Any


@dataclass(frozen=True)
class _EvictionPlan:
    entity_type: EntityType
    region: CacheRegion
    key: Any
    regions_to_clear: tuple[CacheRegion, ...]


def _has_expression(expression: Any) -> bool:
    if callable(expression):
        return True
    return isinstance(expression, str) and bool(expression.strip())


class CacheOrchestrator:
    """Orquestra leituras com cache e evicções por domínio.

    Não guarda estado mutável além das referências recebidas; uma
    instância pode ser compartilhada por qualquer número de chamadas
    concorrentes.

    Leituras e evicções concorrentes sobre a mesma chave não são
    ordenadas entre si: uma leitura simultânea a uma evicção pode
    devolver o valor antigo (last-writer-wins no backend).

    Example:
        ```python
        orchestrator = CacheOrchestrator(registry, InMemoryCacheStore())

        ctx = CallContext(name="get_order", args=(42,), return_type=Order)
        outcome = orchestrator.handle_read(ctx, DomainCacheConfig(domain="orders"), lambda: repo.load(42))

        orchestrator.handle_evict(ctx, DomainCacheEvictConfig(domain="orders"), saved_order)
        ```
    """

    def __init__(
        self,
        registry: GraphRegistry,
        store: CacheStore,
        key_generator: KeyGenerator | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        """Initialize cache orchestrator.

        Args:
            registry: Registro de grafos por domínio
            store: Resolução das regiões físicas
            key_generator: Gerador de chaves (default: DefaultKeyGenerator)
            metrics: Coletor de métricas (default: NoOpMetrics)
        """
        self._registry = registry
        self._store = store
        self._key_generator = key_generator or DefaultKeyGenerator()
        self._metrics = metrics or NoOpMetrics()

    @property
    def registry(self) -> GraphRegistry:
        return self._registry

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def key_generator(self) -> KeyGenerator:
        return self._key_generator

    # ============================================================
    # Leitura
    # ============================================================

    def handle_read(
        self,
        context: CallContext,
        config: DomainCacheConfig,
        proceed: Callable[[], Any],
    ) -> ReadOutcome:
        """Executa uma leitura com cache (read-through).

        Args:
            context: Contexto da chamada
            config: Configuração de leitura
            proceed: Executa a função original

        Returns:
            ReadOutcome com o valor e se a função foi executada

        Raises:
            KeyExpressionError: Se a expressão de chave configurada falhar
        """
        plan = self._plan_read(context, config)
        if plan is None:
            return ReadOutcome(proceed(), proceeded=True)

        start_time = time.perf_counter()
        try:
            cached = plan.region.get(plan.key)
        except Exception as e:
            cached = self._lookup_failed(plan, e)
        else:
            self._record_lookup(plan, config.domain, cached, start_time)

        if cached is not None:
            return ReadOutcome(cached.value, proceeded=False)

        result = proceed()
        if self._should_store(result, plan.entity_type, config.domain):
            try:
                plan.region.put(plan.key, result)
            except Exception as e:
                self._store_failed(plan, e)
            else:
                self._record_store(plan, config.domain)
        return ReadOutcome(result, proceeded=True)

    async def handle_read_async(
        self,
        context: CallContext,
        config: DomainCacheConfig,
        proceed: Callable[[], Awaitable[Any]],
    ) -> ReadOutcome:
        """Variante assíncrona de handle_read; ``proceed`` retorna um awaitable."""
        plan = self._plan_read(context, config)
        if plan is None:
            return ReadOutcome(await proceed(), proceeded=True)

        start_time = time.perf_counter()
        try:
            cached = await self._region_call_async(plan.region, "get", plan.key)
        except Exception as e:
            cached = self._lookup_failed(plan, e)
        else:
            self._record_lookup(plan, config.domain, cached, start_time)

        if cached is not None:
            return ReadOutcome(cached.value, proceeded=False)

        result = await proceed()
        if self._should_store(result, plan.entity_type, config.domain):
            try:
                await self._region_call_async(plan.region, "put", plan.key, result)
            except Exception as e:
                self._store_failed(plan, e)
            else:
                self._record_store(plan, config.domain)
        return ReadOutcome(result, proceeded=True)

    def _plan_read(self, context: CallContext, config: DomainCacheConfig) -> _ReadPlan | None:
        domain = config.domain

        entity_type = resolve_entity_type(context.return_type)
        if entity_type is None or not self._registry.is_cacheable(entity_type, domain):
            logger.debug(f"Tipo de entidade não cacheável no domínio '{domain}' para {context.name}")
            self._metrics.record_skip(SKIP_NOT_CACHEABLE)
            return None

        key = self._key_generator.generate_key(config.key, context)
        if key is None:
            logger.debug(f"Sem chave de cache para {context.name} no domínio '{domain}'")
            self._metrics.record_skip(SKIP_NO_KEY)
            return None

        region = self._resolve_region(entity_type)
        if region is None:
            self._metrics.record_skip(SKIP_NO_REGION)
            return None

        return _ReadPlan(entity_type=entity_type, region=region, key=key)

    def _should_store(self, result: Any, entity_type: EntityType, domain: str) -> bool:
        """Classifica o resultado antes de gravá-lo.

        Coleções são classificadas pelo tipo do primeiro elemento. O tipo
        em runtime precisa ser o declarado ou um subtipo dele, e também
        cacheável no domínio: um subtipo polimórfico que pertence a outra
        região não é gravado nesta.
        """
        runtime_type = runtime_entity_type(result)
        if runtime_type is None:
            self._metrics.record_skip(SKIP_EMPTY_RESULT)
            return False

        if not is_subtype(runtime_type, entity_type) or not self._registry.is_cacheable(runtime_type, domain):
            logger.debug(
                f"Resultado do tipo {runtime_type!r} não corresponde a {entity_type!r} "
                f"no domínio '{domain}'; não será armazenado"
            )
            self._metrics.record_skip(SKIP_TYPE_MISMATCH)
            return False

        return True

    def _record_lookup(self, plan: _ReadPlan, domain: str, cached: CachedValue | None, start_time: float) -> None:
        latency = time.perf_counter() - start_time
        if cached is not None:
            logger.debug(f"Cache HIT [{plan.region.name}:{plan.key}] no domínio '{domain}'")
            self._metrics.record_hit(plan.region.name, plan.key, latency)
        else:
            logger.debug(f"Cache MISS [{plan.region.name}:{plan.key}] no domínio '{domain}'")
            self._metrics.record_miss(plan.region.name, plan.key, latency)

    def _lookup_failed(self, plan: _ReadPlan, error: Exception) -> None:
        logger.warning(f"Erro ao buscar cache [{plan.region.name}:{plan.key}]: {error}")
        self._metrics.record_error(plan.region.name, error)
        return None

    def _record_store(self, plan: _ReadPlan, domain: str) -> None:
        logger.debug(f"Resultado armazenado [{plan.region.name}:{plan.key}] no domínio '{domain}'")
        self._metrics.record_write(plan.region.name, plan.key)

    def _store_failed(self, plan: _ReadPlan, error: Exception) -> None:
        logger.warning(f"Erro ao salvar cache [{plan.region.name}:{plan.key}]: {error}")
        self._metrics.record_error(plan.region.name, error)

    # ============================================================
    # Evicção
    # ============================================================

    def handle_evict(
        self,
        context: CallContext,
        config: DomainCacheEvictConfig,
        result: Any,
    ) -> EvictionOutcome:
        """Invalida o cache após uma escrita bem-sucedida.

        Args:
            context: Contexto da chamada
            config: Configuração de evicção
            result: Resultado da função original

        Returns:
            EvictionOutcome descrevendo o que foi invalidado

        Raises:
            KeyExpressionError: Se a expressão de chave configurada falhar
        """
        plan = self._plan_eviction(context, config, result)
        if plan is None:
            return EvictionOutcome()

        evicted_key = None
        if plan.key is not None:
            try:
                plan.region.evict(plan.key)
            except Exception as e:
                self._eviction_failed(plan.region, e)
            else:
                evicted_key = plan.key
                self._record_eviction(plan.region, plan.key, config.domain)

        cleared = []
        for region in plan.regions_to_clear:
            try:
                region.clear()
            except Exception as e:
                self._eviction_failed(region, e)
            else:
                cleared.append(region.name)
                self._record_clear(region, config)

        return EvictionOutcome(plan.entity_type, evicted_key, tuple(cleared))

    async def handle_evict_async(
        self,
        context: CallContext,
        config: DomainCacheEvictConfig,
        result: Any,
    ) -> EvictionOutcome:
        """Variante assíncrona de handle_evict."""
        plan = self._plan_eviction(context, config, result)
        if plan is None:
            return EvictionOutcome()

        evicted_key = None
        if plan.key is not None:
            try:
                await self._region_call_async(plan.region, "evict", plan.key)
            except Exception as e:
                self._eviction_failed(plan.region, e)
            else:
                evicted_key = plan.key
                self._record_eviction(plan.region, plan.key, config.domain)

        cleared = []
        for region in plan.regions_to_clear:
            try:
                await self._region_call_async(region, "clear")
            except Exception as e:
                self._eviction_failed(region, e)
            else:
                cleared.append(region.name)
                self._record_clear(region, config)

        return EvictionOutcome(plan.entity_type, evicted_key, tuple(cleared))

    def determine_evict_type(
        self,
        context: CallContext,
        config: DomainCacheEvictConfig,
        result: Any,
    ) -> EntityType | None:
        """Resolve o tipo de entidade a invalidar.

        Ordem de prioridade:
        1. Tipo explícito na configuração, se cacheável no domínio
        2. Tipo do resultado (primeiro elemento, se coleção)
        3. Tipo de cada argumento, na ordem, usando o primeiro cacheável
        """
        domain = config.domain

        if config.type is not None and self._registry.is_cacheable(config.type, domain):
            return config.type

        from_result = runtime_entity_type(result)
        if self._registry.is_cacheable(from_result, domain):
            return from_result

        for arg in (*context.args, *context.kwargs.values()):
            from_arg = runtime_entity_type(arg)
            if self._registry.is_cacheable(from_arg, domain):
                return from_arg

        return None

    def _plan_eviction(
        self,
        context: CallContext,
        config: DomainCacheEvictConfig,
        result: Any,
    ) -> _EvictionPlan | None:
        domain = config.domain

        entity_type = self.determine_evict_type(context, config, result)
        if entity_type is None:
            logger.debug(f"Nenhuma entidade cacheável para evicção no domínio '{domain}' ({context.name})")
            return None

        region = self._resolve_region(entity_type)
        if region is None:
            return None

        key = None
        if _has_expression(config.key):
            key = self._key_generator.generate_key(config.key, context)

        if config.atomic:
            # Atômico: chave nomeada ou a própria região, nunca o grafo
            regions_to_clear: tuple[CacheRegion, ...] = () if key is not None else (region,)
        else:
            regions_to_clear = self._affected_regions(entity_type, region, domain)

        return _EvictionPlan(entity_type=entity_type, region=region, key=key, regions_to_clear=regions_to_clear)

    def _affected_regions(self, entity_type: EntityType, region: CacheRegion, domain: str) -> tuple[CacheRegion, ...]:
        """Regiões do fecho transitivo; a região da própria entidade vem primeiro."""
        others = [
            affected for affected in self._registry.affected_classes(entity_type, domain) if affected != entity_type
        ]
        regions = [region]
        for affected in sorted(others, key=region_name_for):
            affected_region = self._resolve_region(affected)
            if affected_region is not None:
                regions.append(affected_region)
        return tuple(regions)

    def _record_eviction(self, region: CacheRegion, key: Any, domain: str) -> None:
        logger.debug(f"Removido [{region.name}:{key}] no domínio '{domain}'")
        self._metrics.record_eviction(region.name, key)

    def _record_clear(self, region: CacheRegion, config: DomainCacheEvictConfig) -> None:
        mode = "atomicamente" if config.atomic else "pelo grafo"
        logger.debug(f"Região [{region.name}] limpa {mode} no domínio '{config.domain}'")
        self._metrics.record_clear(region.name)

    def _eviction_failed(self, region: CacheRegion, error: Exception) -> None:
        logger.warning(f"Erro ao invalidar região {region.name}: {error}")
        self._metrics.record_error(region.name, error)

    # ============================================================
    # Regiões
    # ============================================================

    def _resolve_region(self, entity_type: EntityType) -> CacheRegion | None:
        name = region_name_for(entity_type)
        try:
            region = self._store.resolve_region(name)
        except Exception as e:
            logger.warning(f"Erro ao resolver região {name}: {e}")
            self._metrics.record_error(name, e)
            return None

        if region is None:
            logger.debug(f"Nenhuma região de cache configurada para {name}")
        return region

    @staticmethod
    async def _region_call_async(region: CacheRegion, operation: str, *args: Any) -> Any:
        """Usa a variante async da região quando disponível."""
        if isinstance(region, AsyncCacheRegion):
            return await getattr(region, f"{operation}_async")(*args)
        return getattr(region, operation)(*args)
