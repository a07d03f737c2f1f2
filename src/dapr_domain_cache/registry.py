"""Registro de grafos de dependência entre tipos de entidade.

Cada domínio tem seu próprio grafo dirigido: uma aresta ``A -> B``
significa que invalidar o cache de ``A`` também invalida o de ``B``.
O registro é construído uma única vez e não muda depois disso.
"""

import logging
from collections.abc import Hashable, Iterable
from dataclasses import dataclass
from typing import Any

from .exceptions import RegistryConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN = "default"

EntityType = Hashable

_EXHAUSTED = object()


def _singleton(entity: EntityType) -> frozenset[EntityType]:
    try:
        return frozenset({entity})
    except TypeError:
        return frozenset()


@dataclass(frozen=True)
class CacheManagedDeclaration:
    """Declaração de um tipo de entidade cacheável e seus dependentes.

    Attributes:
        entity_type: Tipo de entidade (normalmente uma classe)
        domain: Domínio ao qual a declaração pertence
        dependants: Dependentes diretos, na ordem declarada
    """

    entity_type: EntityType
    domain: str = DEFAULT_DOMAIN
    dependants: tuple[EntityType, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependants", tuple(self.dependants))


class EntityTypeGraph:
    """Grafo de um único domínio com fechos transitivos memoizados.

    Os fechos são calculados sob demanda e nunca mudam depois de
    calculados. Duas threads calculando o mesmo fecho ao mesmo tempo
    produzem o mesmo resultado; a segunda escrita é descartada.
    """

    def __init__(self, domain: str) -> None:
        self._domain = domain
        self._direct: dict[EntityType, list[EntityType]] = {}
        self._nodes: set[EntityType] | frozenset[EntityType] = set()
        self._closure: dict[EntityType, frozenset[EntityType]] = {}
        self._frozen = False

    @property
    def domain(self) -> str:
        """Nome do domínio."""
        return self._domain

    @property
    def all_nodes(self) -> frozenset[EntityType]:
        """Todas as entidades declaradas ou citadas como dependentes."""
        return frozenset(self._nodes)

    def direct(self, entity: EntityType) -> tuple[EntityType, ...]:
        """Dependentes diretos de uma entidade, na ordem declarada."""
        return tuple(self._direct.get(entity, ()))

    def add(self, entity: EntityType, dependants: Iterable[EntityType]) -> None:
        """Acumula uma declaração no grafo.

        Raises:
            RegistryConfigurationError: Se o grafo já foi congelado
        """
        if self._frozen:
            raise RegistryConfigurationError(f"Grafo do domínio '{self._domain}' já foi inicializado")

        edges = self._direct.setdefault(entity, [])
        self._nodes.add(entity)
        for dependant in dependants:
            if dependant not in edges:
                edges.append(dependant)
            self._nodes.add(dependant)

    def freeze(self) -> None:
        """Encerra a fase de declaração; a partir daqui o grafo é somente leitura."""
        self._nodes = frozenset(self._nodes)
        self._frozen = True

    def warm_up(self) -> None:
        """Pré-calcula o fecho de todos os nós."""
        for entity in self._nodes:
            self.affected(entity)

    def is_cacheable(self, entity: EntityType) -> bool:
        """Verifica se a entidade pertence ao grafo."""
        try:
            return entity in self._nodes
        except TypeError:
            return False

    def affected(self, entity: EntityType) -> frozenset[EntityType]:
        """Retorna o fecho transitivo da entidade, incluindo ela mesma.

        Entidades fora do grafo não são memoizadas: o fecho é apenas a
        própria entidade (vazio se ela não for hashable).
        """
        if not self.is_cacheable(entity):
            return _singleton(entity)

        closure = self._closure.get(entity)
        if closure is None:
            closure = self._closure.setdefault(entity, self._build_closure(entity))
        return closure

    def _build_closure(self, root: EntityType) -> frozenset[EntityType]:
        """Busca em profundidade a partir de ``root``.

        Um nó revisitado enquanto ainda está no caminho atual fecha um
        ciclo: a aresta é ignorada e a travessia segue pelos irmãos.
        """
        accumulator: dict[EntityType, None] = {root: None}
        visiting = {root}
        stack = [(root, iter(self._direct.get(root, ())))]

        while stack:
            node, dependants = stack[-1]
            dependant = next(dependants, _EXHAUSTED)
            if dependant is _EXHAUSTED:
                stack.pop()
                visiting.discard(node)
                continue

            if dependant in visiting:
                logger.warning(f"Ciclo detectado envolvendo {dependant!r} no domínio '{self._domain}'")
                continue

            if dependant in accumulator:
                # Já explorado por completo em outro ramo
                continue

            accumulator[dependant] = None
            visiting.add(dependant)
            stack.append((dependant, iter(self._direct.get(dependant, ()))))

        return frozenset(accumulator)


class GraphRegistry:
    """Registro de grafos por domínio.

    Construído a partir de uma lista estática de declarações em duas
    passadas: primeiro todas as arestas de todos os domínios são
    carregadas, depois os grafos são congelados e os fechos calculados.

    Example:
        ```python
        registry = GraphRegistry([
            CacheManagedDeclaration(Invoice, "billing", (LineItem, Customer)),
            CacheManagedDeclaration(LineItem, "billing"),
        ])

        registry.is_cacheable(Invoice, "billing")       # True
        registry.affected_classes(Invoice, "billing")   # {Invoice, LineItem, Customer}
        ```
    """

    def __init__(self, declarations: Iterable[CacheManagedDeclaration]) -> None:
        """Inicializa o registro.

        Args:
            declarations: Declarações de entidades, em ordem

        Raises:
            RegistryConfigurationError: Se nenhuma declaração for fornecida
                ou se alguma declaração for inválida
        """
        declarations = list(declarations)
        if not declarations:
            raise RegistryConfigurationError(
                "Nenhuma declaração de entidade configurada. Registre ao menos um tipo cacheável."
            )

        self._graphs: dict[str, EntityTypeGraph] = {}

        # Primeira passada: carrega todas as arestas de todos os domínios
        for declaration in declarations:
            self._validate(declaration)
            graph = self._graphs.get(declaration.domain)
            if graph is None:
                graph = self._graphs.setdefault(declaration.domain, EntityTypeGraph(declaration.domain))
            graph.add(declaration.entity_type, declaration.dependants)

        # Segunda passada: congela e calcula os fechos
        for domain, graph in self._graphs.items():
            graph.freeze()
            graph.warm_up()
            logger.info(f"Domínio '{domain}' inicializado com {len(graph.all_nodes)} tipos de entidade")

    @classmethod
    def from_tuples(
        cls,
        records: Iterable[tuple[EntityType, Iterable[EntityType], str]],
    ) -> "GraphRegistry":
        """Constrói o registro a partir de tuplas ``(entidade, dependentes, domínio)``."""
        return cls(
            CacheManagedDeclaration(entity_type=entity, domain=domain, dependants=tuple(dependants))
            for entity, dependants, domain in records
        )

    @staticmethod
    def _validate(declaration: CacheManagedDeclaration) -> None:
        if not isinstance(declaration.domain, str) or not declaration.domain.strip():
            raise RegistryConfigurationError(
                f"Domínio inválido para {declaration.entity_type!r}: {declaration.domain!r}"
            )
        try:
            hash(declaration.entity_type)
            for dependant in declaration.dependants:
                hash(dependant)
        except TypeError as e:
            raise RegistryConfigurationError(f"Tipo de entidade não hashable: {e}") from e

    @property
    def domains(self) -> tuple[str, ...]:
        """Domínios registrados, na ordem da primeira declaração."""
        return tuple(self._graphs)

    def graph(self, domain: str) -> EntityTypeGraph | None:
        """Grafo de um domínio, ou None se o domínio não existir."""
        return self._graphs.get(domain)

    def __contains__(self, domain: Any) -> bool:
        return domain in self._graphs

    def is_cacheable(self, entity: EntityType | None, domain: str) -> bool:
        """Verifica se a entidade é cacheável no domínio.

        Domínio ou entidade desconhecidos resultam em False, nunca em erro.
        """
        if entity is None:
            return False
        graph = self._graphs.get(domain)
        return graph is not None and graph.is_cacheable(entity)

    def affected_classes(self, entity: EntityType, domain: str) -> frozenset[EntityType]:
        """Retorna as entidades cujo cache deve ser invalidado junto com ``entity``.

        Para domínio ou entidade desconhecidos retorna apenas a própria
        entidade, sem memoizar. Nunca levanta exceção.
        """
        graph = self._graphs.get(domain)
        if graph is None:
            return _singleton(entity)
        return graph.affected(entity)
