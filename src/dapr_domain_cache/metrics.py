"""Métricas de cache usando OpenTelemetry."""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Protocol

from opentelemetry import metrics as otel_metrics

logger = logging.getLogger(__name__)

# Motivos de leitura sem cache
SKIP_NOT_CACHEABLE = "not_cacheable"
SKIP_NO_KEY = "no_key"
SKIP_NO_REGION = "no_region"
SKIP_TYPE_MISMATCH = "type_mismatch"
SKIP_EMPTY_RESULT = "empty_result"


class CacheMetrics(Protocol):
    """Protocol para coletores de métricas."""

    def record_hit(self, region: str, key: Any, latency: float) -> None:
        """Registra cache hit."""
        ...

    def record_miss(self, region: str, key: Any, latency: float) -> None:
        """Registra cache miss."""
        ...

    def record_write(self, region: str, key: Any) -> None:
        """Registra escrita de resultado na região."""
        ...

    def record_eviction(self, region: str, key: Any) -> None:
        """Registra remoção de uma chave."""
        ...

    def record_clear(self, region: str) -> None:
        """Registra limpeza de uma região inteira."""
        ...

    def record_skip(self, reason: str) -> None:
        """Registra chamada executada sem cache."""
        ...

    def record_error(self, region: str, error: Exception) -> None:
        """Registra erro do backend de cache."""
        ...


class NoOpMetrics:
    """Coletor de métricas que não faz nada (default)."""

    def record_hit(self, region: str, key: Any, latency: float) -> None:
        pass

    def record_miss(self, region: str, key: Any, latency: float) -> None:
        pass

    def record_write(self, region: str, key: Any) -> None:
        pass

    def record_eviction(self, region: str, key: Any) -> None:
        pass

    def record_clear(self, region: str) -> None:
        pass

    def record_skip(self, reason: str) -> None:
        pass

    def record_error(self, region: str, error: Exception) -> None:
        pass


@dataclass
class RegionStats:
    """Estatísticas de uma região."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0
    clears: int = 0
    errors: int = 0
    total_latency_hits: float = 0.0
    total_latency_misses: float = 0.0

    @property
    def total_reads(self) -> int:
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return self.hits / total if total > 0 else 0.0

    @property
    def avg_hit_latency_ms(self) -> float:
        return (self.total_latency_hits / self.hits * 1000) if self.hits > 0 else 0.0

    @property
    def avg_miss_latency_ms(self) -> float:
        return (self.total_latency_misses / self.misses * 1000) if self.misses > 0 else 0.0


@dataclass
class CacheStats:
    """Estatísticas agregadas de todas as regiões."""

    hits: int = 0
    misses: int = 0
    writes: int = 0
    evictions: int = 0
    clears: int = 0
    errors: int = 0
    skips: dict[str, int] = field(default_factory=dict)

    @property
    def total_reads(self) -> int:
        return self.hits + self.misses

    @property
    def hit_ratio(self) -> float:
        total = self.total_reads
        return self.hits / total if total > 0 else 0.0


class OpenTelemetryMetrics:
    """Coletor de métricas usando OpenTelemetry.

    Métricas exportadas:
    - domain_cache.hits (counter)
    - domain_cache.misses (counter)
    - domain_cache.writes (counter)
    - domain_cache.evictions (counter)
    - domain_cache.clears (counter)
    - domain_cache.skips (counter, por motivo)
    - domain_cache.errors (counter)
    - domain_cache.latency (histogram): latência das leituras em segundos

    As métricas usam o nome da região como atributo, nunca a chave,
    para manter a cardinalidade baixa.

    Example:
        ```python
        from opentelemetry import metrics
        from opentelemetry.sdk.metrics import MeterProvider

        metrics.set_meter_provider(MeterProvider())
        orchestrator = CacheOrchestrator(registry, store, metrics=OpenTelemetryMetrics())
        ```
    """

    def __init__(self, meter_name: str = "dapr_domain_cache") -> None:
        meter = otel_metrics.get_meter(meter_name)

        self._hits_counter = meter.create_counter("domain_cache.hits", description="Número de cache hits", unit="1")
        self._misses_counter = meter.create_counter(
            "domain_cache.misses", description="Número de cache misses", unit="1"
        )
        self._writes_counter = meter.create_counter(
            "domain_cache.writes", description="Número de resultados armazenados", unit="1"
        )
        self._evictions_counter = meter.create_counter(
            "domain_cache.evictions", description="Número de chaves removidas", unit="1"
        )
        self._clears_counter = meter.create_counter(
            "domain_cache.clears", description="Número de regiões limpas", unit="1"
        )
        self._skips_counter = meter.create_counter(
            "domain_cache.skips", description="Número de chamadas executadas sem cache", unit="1"
        )
        self._errors_counter = meter.create_counter(
            "domain_cache.errors", description="Número de erros do backend", unit="1"
        )
        self._latency_histogram = meter.create_histogram(
            "domain_cache.latency", description="Latência das leituras de cache", unit="s"
        )

    def record_hit(self, region: str, key: Any, latency: float) -> None:
        self._hits_counter.add(1, {"region": region})
        self._latency_histogram.record(latency, {"operation": "hit", "region": region})

    def record_miss(self, region: str, key: Any, latency: float) -> None:
        self._misses_counter.add(1, {"region": region})
        self._latency_histogram.record(latency, {"operation": "miss", "region": region})

    def record_write(self, region: str, key: Any) -> None:
        self._writes_counter.add(1, {"region": region})

    def record_eviction(self, region: str, key: Any) -> None:
        self._evictions_counter.add(1, {"region": region})

    def record_clear(self, region: str) -> None:
        self._clears_counter.add(1, {"region": region})

    def record_skip(self, reason: str) -> None:
        self._skips_counter.add(1, {"reason": reason})

    def record_error(self, region: str, error: Exception) -> None:
        self._errors_counter.add(1, {"region": region, "error_type": type(error).__name__})


class InMemoryMetrics:
    """Coletor de métricas em memória com estatísticas por região.

    Útil para desenvolvimento e testes.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._by_region: dict[str, RegionStats] = defaultdict(RegionStats)
        self._skips: Counter[str] = Counter()

    def record_hit(self, region: str, key: Any, latency: float) -> None:
        with self._lock:
            stats = self._by_region[region]
            stats.hits += 1
            stats.total_latency_hits += latency

    def record_miss(self, region: str, key: Any, latency: float) -> None:
        with self._lock:
            stats = self._by_region[region]
            stats.misses += 1
            stats.total_latency_misses += latency

    def record_write(self, region: str, key: Any) -> None:
        with self._lock:
            self._by_region[region].writes += 1

    def record_eviction(self, region: str, key: Any) -> None:
        with self._lock:
            self._by_region[region].evictions += 1

    def record_clear(self, region: str) -> None:
        with self._lock:
            self._by_region[region].clears += 1

    def record_skip(self, reason: str) -> None:
        with self._lock:
            self._skips[reason] += 1

    def record_error(self, region: str, error: Exception) -> None:
        with self._lock:
            self._by_region[region].errors += 1

    def get_stats(self) -> CacheStats:
        """Retorna estatísticas agregadas."""
        with self._lock:
            regions = list(self._by_region.values())
            return CacheStats(
                hits=sum(s.hits for s in regions),
                misses=sum(s.misses for s in regions),
                writes=sum(s.writes for s in regions),
                evictions=sum(s.evictions for s in regions),
                clears=sum(s.clears for s in regions),
                errors=sum(s.errors for s in regions),
                skips=dict(self._skips),
            )

    def get_region_stats(self, region: str) -> RegionStats | None:
        """Retorna uma cópia das estatísticas de uma região."""
        with self._lock:
            if region not in self._by_region:
                return None
            stats = self._by_region[region]
            return RegionStats(**stats.__dict__)

    def reset(self) -> None:
        """Reseta todas as estatísticas."""
        with self._lock:
            self._by_region.clear()
            self._skips.clear()
