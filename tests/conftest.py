"""Configuração de fixtures para testes."""

import pytest
from models import Customer, Invoice, LineItem, Order, Payment, PriorityOrder

from dapr_domain_cache import (
    CacheManagedDeclaration,
    CacheOrchestrator,
    GraphRegistry,
    InMemoryCacheStore,
    InMemoryMetrics,
)


@pytest.fixture
def declarations() -> list[CacheManagedDeclaration]:
    """Declarações dos domínios "billing" e "orders"."""
    return [
        CacheManagedDeclaration(Invoice, "billing", (LineItem, Customer)),
        CacheManagedDeclaration(LineItem, "billing"),
        CacheManagedDeclaration(Payment, "billing", (Invoice,)),
        CacheManagedDeclaration(Order, "orders", (PriorityOrder,)),
        CacheManagedDeclaration(Customer, "orders"),
    ]


@pytest.fixture
def registry(declarations: list[CacheManagedDeclaration]) -> GraphRegistry:
    return GraphRegistry(declarations)


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def metrics() -> InMemoryMetrics:
    return InMemoryMetrics()


@pytest.fixture
def orchestrator(registry: GraphRegistry, store: InMemoryCacheStore, metrics: InMemoryMetrics) -> CacheOrchestrator:
    return CacheOrchestrator(registry, store, metrics=metrics)
