"""Registro explícito de tipos de entidade cacheáveis.

Substitui a descoberta automática de classes anotadas: cada aplicação
mantém um catálogo e marca suas entidades com ``cache_managed``.

Example:
    ```python
    catalog = DeclarationCatalog()

    @catalog.cache_managed(domain="billing", dependants=["LineItem", "Customer"])
    @dataclass
    class Invoice:
        id: int

    @catalog.cache_managed(domain="billing")
    @dataclass
    class LineItem:
        invoice_id: int

    registry = catalog.build_registry()
    ```
"""

import logging
from collections.abc import Callable, Iterable
from threading import Lock
from typing import Any, TypeVar

from .exceptions import RegistryConfigurationError
from .registry import DEFAULT_DOMAIN, CacheManagedDeclaration, EntityType, GraphRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

DependantRef = EntityType | str


class DeclarationCatalog:
    """Catálogo de declarações de entidades.

    Dependentes podem ser referenciados por nome (``"LineItem"`` ou
    ``"billing.models.LineItem"``) quando a classe ainda não foi
    definida; os nomes são resolvidos em ``declarations()`` contra as
    classes registradas no catálogo.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[EntityType, str, tuple[DependantRef, ...]]] = []
        self._lock = Lock()

    def cache_managed(
        self,
        domain: str = DEFAULT_DOMAIN,
        dependants: Iterable[DependantRef] = (),
    ) -> Callable[[T], T]:
        """Decorator de classe que registra a entidade no catálogo.

        Args:
            domain: Domínio do grafo (default: "default")
            dependants: Dependentes diretos, classes ou nomes

        Returns:
            Decorator que devolve a classe sem alterações
        """
        dependant_refs = tuple(dependants)

        def decorator(cls: T) -> T:
            self.declare(cls, domain=domain, dependants=dependant_refs)
            return cls

        return decorator

    def declare(
        self,
        entity_type: EntityType,
        domain: str = DEFAULT_DOMAIN,
        dependants: Iterable[DependantRef] = (),
    ) -> None:
        """Registra uma declaração manualmente."""
        with self._lock:
            self._entries.append((entity_type, domain, tuple(dependants)))
        logger.debug(f"Entidade {entity_type!r} declarada no domínio '{domain}'")

    def __len__(self) -> int:
        return len(self._entries)

    def declarations(self) -> list[CacheManagedDeclaration]:
        """Declarações com os nomes de dependentes já resolvidos.

        Raises:
            RegistryConfigurationError: Se um nome não corresponder a
                exatamente uma classe do catálogo
        """
        with self._lock:
            entries = list(self._entries)

        names = self._index_names(entity for entity, _, _ in entries)
        return [
            CacheManagedDeclaration(
                entity_type=entity,
                domain=domain,
                dependants=tuple(self._resolve(ref, names, entity) for ref in dependants),
            )
            for entity, domain, dependants in entries
        ]

    def build_registry(self) -> GraphRegistry:
        """Constrói o GraphRegistry com todas as declarações do catálogo."""
        return GraphRegistry(self.declarations())

    @staticmethod
    def _index_names(entities: Iterable[EntityType]) -> dict[str, list[Any]]:
        names: dict[str, list[Any]] = {}
        for entity in entities:
            if not isinstance(entity, type):
                continue
            for name in {entity.__qualname__, f"{entity.__module__}.{entity.__qualname__}"}:
                candidates = names.setdefault(name, [])
                if entity not in candidates:
                    candidates.append(entity)
        return names

    @staticmethod
    def _resolve(ref: DependantRef, names: dict[str, list[Any]], owner: EntityType) -> EntityType:
        if not isinstance(ref, str):
            return ref

        candidates = names.get(ref, [])
        if not candidates:
            raise RegistryConfigurationError(f"Dependente '{ref}' de {owner!r} não está registrado no catálogo")
        if len(candidates) > 1:
            raise RegistryConfigurationError(
                f"Dependente '{ref}' de {owner!r} é ambíguo; use o nome qualificado com o módulo"
            )
        return candidates[0]
