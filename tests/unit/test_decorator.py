"""Testes para os decorators de domínio."""

from unittest.mock import patch

import pytest
from models import Customer, Invoice, LineItem, Order

from dapr_domain_cache.context import region_name_for
from dapr_domain_cache.decorator import (
    BoundDomainMethod,
    DomainCacheEvictWrapper,
    DomainCacheWrapper,
    ManagedDomainCache,
    domain_cache,
    domain_cache_evict,
)
from dapr_domain_cache.declarations import DeclarationCatalog
from dapr_domain_cache.exceptions import RegistryConfigurationError
from dapr_domain_cache.orchestrator import CacheOrchestrator
from dapr_domain_cache.regions import DaprCacheStore, InMemoryCacheStore
from dapr_domain_cache.registry import CacheManagedDeclaration, GraphRegistry


class TestDomainCache:
    """Testes para @domain_cache."""

    def test_preserves_metadata(self, orchestrator: CacheOrchestrator) -> None:
        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id: int) -> Order:
            """Busca um pedido."""
            return Order(order_id)

        assert isinstance(get_order, DomainCacheWrapper)
        assert get_order.__name__ == "get_order"
        assert get_order.__doc__ == "Busca um pedido."
        assert get_order.config.domain == "orders"

    def test_caches_by_return_annotation(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        calls = []

        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id: int) -> Order:
            calls.append(order_id)
            return Order(order_id)

        assert get_order(42) == Order(42)
        assert get_order(42) == Order(42)
        assert calls == [42]
        assert "get_order_42" in store.resolve_region(region_name_for(Order))

    def test_custom_key(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        @domain_cache(orchestrator, domain="orders", key="order:{order_id}")
        def get_order(order_id: int) -> Order:
            return Order(order_id)

        get_order(order_id=3)

        assert "order:3" in store.resolve_region(region_name_for(Order))

    def test_keyword_calls_do_not_share_entries(self, orchestrator: CacheOrchestrator) -> None:
        """Mesmo valor em parâmetros diferentes não devolve o resultado de outra chamada."""

        @domain_cache(orchestrator, domain="orders")
        def find(customer_id: int = 0, order_id: int = 0) -> Order:
            return Order(order_id, total=float(customer_id))

        assert find(customer_id=1) == Order(0, total=1.0)
        assert find(order_id=1) == Order(1, total=0.0)

    def test_positional_and_keyword_calls_share_entry(self, orchestrator: CacheOrchestrator) -> None:
        calls = []

        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id: int, include_items: bool = False) -> Order:
            calls.append(order_id)
            return Order(order_id)

        get_order(5)
        get_order(order_id=5)
        get_order(5, False)

        assert calls == [5]

    def test_without_annotation_is_not_cached(self, orchestrator: CacheOrchestrator) -> None:
        calls = []

        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id):
            calls.append(order_id)
            return Order(order_id)

        get_order(1)
        get_order(1)

        assert calls == [1, 1]

    def test_exception_propagates(self, orchestrator: CacheOrchestrator) -> None:
        @domain_cache(orchestrator, domain="orders")
        def get_order(order_id: int) -> Order:
            raise LookupError(order_id)

        with pytest.raises(LookupError):
            get_order(1)

    def test_default_domain_from_env(self, orchestrator: CacheOrchestrator) -> None:
        with patch.dict("os.environ", {"DAPR_CACHE_DEFAULT_DOMAIN": "orders"}):

            @domain_cache(orchestrator)
            def get_order(order_id: int) -> Order:
                return Order(order_id)

        assert get_order.config.domain == "orders"

    @pytest.mark.asyncio
    async def test_async_function(self, orchestrator: CacheOrchestrator) -> None:
        calls = []

        @domain_cache(orchestrator, domain="orders")
        async def get_order(order_id: int) -> Order:
            calls.append(order_id)
            return Order(order_id)

        assert await get_order(7) == Order(7)
        assert await get_order(7) == Order(7)
        assert calls == [7]

    @pytest.mark.asyncio
    async def test_async_collection(self, orchestrator: CacheOrchestrator) -> None:
        calls = []

        @domain_cache(orchestrator, domain="orders")
        async def list_orders(customer_id: int) -> list[Order]:
            calls.append(customer_id)
            return [Order(1), Order(2)]

        await list_orders(1)
        assert await list_orders(1) == [Order(1), Order(2)]
        assert calls == [1]


class Repository:
    """Repositório usado nos testes de métodos."""

    def __init__(self) -> None:
        self.loads = 0
        self.saves = 0

    def load(self, customer_id: int) -> Customer:
        self.loads += 1
        return Customer(customer_id, "Ana")


def build_repository_class(orchestrator: CacheOrchestrator) -> type:
    class CustomerRepository(Repository):
        @domain_cache(orchestrator, domain="orders")
        def get_customer(self, customer_id: int) -> Customer:
            return self.load(customer_id)

        @domain_cache_evict(orchestrator, domain="orders")
        def save_customer(self, customer: Customer) -> Customer:
            self.saves += 1
            return customer

    return CustomerRepository


class TestMethods:
    """Testes para decorators em métodos."""

    def test_bound_method(self, orchestrator: CacheOrchestrator) -> None:
        repository = build_repository_class(orchestrator)()

        assert isinstance(repository.get_customer, BoundDomainMethod)
        assert repository.get_customer.__name__ == "get_customer"

    def test_instances_share_keys(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        """self não entra na chave; instâncias diferentes compartilham o cache."""
        repository_class = build_repository_class(orchestrator)
        first = repository_class()
        second = repository_class()

        first.get_customer(1)
        second.get_customer(1)

        assert first.loads == 1
        assert second.loads == 0
        assert store.resolve_region(region_name_for(Customer)).keys() == ["get_customer_1"]

    def test_evict_method(self, orchestrator: CacheOrchestrator) -> None:
        repository = build_repository_class(orchestrator)()

        repository.get_customer(1)
        repository.save_customer(Customer(1, "Bia"))
        repository.get_customer(1)

        assert repository.loads == 2
        assert repository.saves == 1

    def test_class_access_returns_wrapper(self, orchestrator: CacheOrchestrator) -> None:
        repository_class = build_repository_class(orchestrator)
        assert isinstance(repository_class.__dict__["get_customer"], DomainCacheWrapper)
        assert isinstance(repository_class.get_customer, DomainCacheWrapper)


class TestDomainCacheEvict:
    """Testes para @domain_cache_evict."""

    def test_returns_result_unchanged(self, orchestrator: CacheOrchestrator) -> None:
        invoice = Invoice(1)

        @domain_cache_evict(orchestrator, domain="billing")
        def save_invoice(value: Invoice) -> Invoice:
            return value

        assert isinstance(save_invoice, DomainCacheEvictWrapper)
        assert save_invoice(invoice) is invoice

    def test_cascade_after_write(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        store.resolve_region(region_name_for(LineItem)).put("k", LineItem(1))

        @domain_cache_evict(orchestrator, domain="billing")
        def save_invoice(value: Invoice) -> Invoice:
            return value

        save_invoice(Invoice(1))

        assert len(store.resolve_region(region_name_for(LineItem))) == 0

    def test_no_eviction_when_function_raises(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        store.resolve_region(region_name_for(Invoice)).put("k", Invoice(1))

        @domain_cache_evict(orchestrator, domain="billing", type=Invoice)
        def save_invoice(value: Invoice) -> Invoice:
            raise ValueError("invalid")

        with pytest.raises(ValueError):
            save_invoice(Invoice(1))
        assert "k" in store.resolve_region(region_name_for(Invoice))

    def test_named_atomic(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        invoices = store.resolve_region(region_name_for(Invoice))
        invoices.put("invoice:42", Invoice(42))
        invoices.put("invoice:43", Invoice(43))

        @domain_cache_evict(orchestrator, domain="billing", atomic=True, key="invoice:{arg0.id}")
        def save_invoice(value: Invoice) -> Invoice:
            return value

        save_invoice(Invoice(42))

        assert invoices.keys() == ["invoice:43"]

    @pytest.mark.asyncio
    async def test_async_eviction(self, orchestrator: CacheOrchestrator, store: InMemoryCacheStore) -> None:
        store.resolve_region(region_name_for(Customer)).put("k", Customer(1))

        @domain_cache_evict(orchestrator, domain="billing", type=Invoice)
        async def touch_invoice(invoice_id: int) -> None:
            return None

        await touch_invoice(1)

        assert len(store.resolve_region(region_name_for(Customer))) == 0


class TestManagedDomainCache:
    """Testes para ManagedDomainCache."""

    def test_from_declarations(self, declarations: list[CacheManagedDeclaration]) -> None:
        cache = ManagedDomainCache(declarations, store=InMemoryCacheStore())
        assert cache.registry.domains == ("billing", "orders")
        assert cache.default_domain == "default"

    def test_from_registry(self, registry: GraphRegistry) -> None:
        store = InMemoryCacheStore()
        cache = ManagedDomainCache(registry, store=store)

        assert cache.registry is registry
        assert cache.store is store

    def test_from_catalog(self) -> None:
        catalog = DeclarationCatalog()
        catalog.declare(Invoice, "billing", ["LineItem"])
        catalog.declare(LineItem, "billing")

        cache = ManagedDomainCache(catalog, store=InMemoryCacheStore())

        assert cache.registry.affected_classes(Invoice, "billing") == frozenset({Invoice, LineItem})

    def test_empty_declarations_raise(self) -> None:
        with pytest.raises(RegistryConfigurationError):
            ManagedDomainCache([], store=InMemoryCacheStore())

    def test_default_store_is_dapr(self, declarations: list[CacheManagedDeclaration]) -> None:
        with patch.dict("os.environ", {"DAPR_CACHE_DEFAULT_STORE_NAME": "redis-cache"}):
            cache = ManagedDomainCache(declarations)

        assert isinstance(cache.store, DaprCacheStore)
        assert cache.store.backend.store_name == "redis-cache"

    def test_read_and_evict_cycle(self, declarations: list[CacheManagedDeclaration]) -> None:
        """Leitura cacheada é invalidada pela escrita da entidade da qual depende."""
        cache = ManagedDomainCache(declarations, store=InMemoryCacheStore(), default_domain="billing")
        loads = []

        @cache.cache()
        def get_items(invoice_id: int) -> list[LineItem]:
            loads.append(invoice_id)
            return [LineItem(invoice_id, "sku-1")]

        @cache.evict()
        def save_invoice(invoice: Invoice) -> Invoice:
            return invoice

        get_items(1)
        get_items(1)
        save_invoice(Invoice(1))
        get_items(1)

        assert loads == [1, 1]

    def test_explicit_domain_overrides_default(self, declarations: list[CacheManagedDeclaration]) -> None:
        cache = ManagedDomainCache(declarations, store=InMemoryCacheStore(), default_domain="billing")

        @cache.cache(domain="orders")
        def get_order(order_id: int) -> Order:
            return Order(order_id)

        assert get_order.config.domain == "orders"
