"""Testes para o catálogo de declarações."""

import models
import pytest

from dapr_domain_cache.declarations import DeclarationCatalog
from dapr_domain_cache.exceptions import RegistryConfigurationError
from dapr_domain_cache.registry import CacheManagedDeclaration, GraphRegistry


class Shipment:
    pass


class Parcel:
    pass


class Order:
    """Homônimo de models.Order, para testar ambiguidade."""


class TestDeclarationCatalog:
    """Testes para DeclarationCatalog."""

    def test_cache_managed_returns_class_unchanged(self) -> None:
        """O decorator de classe não altera a classe."""
        catalog = DeclarationCatalog()

        decorated = catalog.cache_managed(domain="shipping")(Shipment)

        assert decorated is Shipment
        assert len(catalog) == 1

    def test_declarations_keep_order(self) -> None:
        """Declarações saem na ordem em que foram registradas."""
        catalog = DeclarationCatalog()
        catalog.declare(Shipment, "shipping", [Parcel])
        catalog.declare(Parcel, "shipping")

        assert catalog.declarations() == [
            CacheManagedDeclaration(Shipment, "shipping", (Parcel,)),
            CacheManagedDeclaration(Parcel, "shipping", ()),
        ]

    def test_default_domain(self) -> None:
        """Sem domínio explícito usa "default"."""
        catalog = DeclarationCatalog()
        catalog.cache_managed()(Parcel)

        assert catalog.declarations()[0].domain == "default"

    def test_forward_reference_by_qualname(self) -> None:
        """Dependente referenciado pelo nome é resolvido para a classe."""
        catalog = DeclarationCatalog()
        catalog.cache_managed(domain="shipping", dependants=["Parcel"])(Shipment)
        catalog.cache_managed(domain="shipping")(Parcel)

        assert catalog.declarations()[0].dependants == (Parcel,)

    def test_forward_reference_by_module_qualified_name(self) -> None:
        """Nome qualificado com o módulo também é aceito."""
        catalog = DeclarationCatalog()
        catalog.declare(models.Invoice, "billing", ["models.LineItem"])
        catalog.declare(models.LineItem, "billing")

        assert catalog.declarations()[0].dependants == (models.LineItem,)

    def test_unknown_reference_raises(self) -> None:
        """Nome não registrado no catálogo é erro de configuração."""
        catalog = DeclarationCatalog()
        catalog.declare(Shipment, "shipping", ["Missing"])

        with pytest.raises(RegistryConfigurationError, match="Missing"):
            catalog.declarations()

    def test_ambiguous_reference_raises(self) -> None:
        """Nome curto de duas classes diferentes é ambíguo."""
        catalog = DeclarationCatalog()
        catalog.declare(models.Order, "orders")
        catalog.declare(Order, "orders")
        catalog.declare(Shipment, "orders", ["Order"])

        with pytest.raises(RegistryConfigurationError, match="ambíguo"):
            catalog.declarations()

    def test_ambiguity_resolved_by_module_name(self) -> None:
        """Nome qualificado desfaz a ambiguidade."""
        catalog = DeclarationCatalog()
        catalog.declare(models.Order, "orders")
        catalog.declare(Order, "orders")
        catalog.declare(Shipment, "orders", ["models.Order"])

        assert catalog.declarations()[2].dependants == (models.Order,)

    def test_build_registry(self) -> None:
        """Deve construir o GraphRegistry com os fechos corretos."""
        catalog = DeclarationCatalog()
        catalog.cache_managed(domain="shipping", dependants=["Parcel"])(Shipment)
        catalog.cache_managed(domain="shipping")(Parcel)

        registry = catalog.build_registry()

        assert isinstance(registry, GraphRegistry)
        assert registry.affected_classes(Shipment, "shipping") == frozenset({Shipment, Parcel})

    def test_build_empty_registry_raises(self) -> None:
        """Catálogo vazio falha ao construir o registro."""
        with pytest.raises(RegistryConfigurationError):
            DeclarationCatalog().build_registry()
