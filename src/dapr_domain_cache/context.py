"""Contexto de chamada e resolução de tipos de entidade."""

import collections
import collections.abc
import inspect
import logging
import types
import typing
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

# Origens aceitas como coleção homogênea de um único tipo de elemento
_COLLECTION_ORIGINS: frozenset[Any] = frozenset(
    {
        list,
        set,
        frozenset,
        tuple,
        collections.deque,
        collections.abc.Collection,
        collections.abc.Iterable,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Set,
        collections.abc.MutableSet,
    }
)

_RUNTIME_COLLECTIONS = (list, tuple, set, frozenset, collections.deque)

_RESOLVE = object()


@dataclass(frozen=True)
class CallContext:
    """Metadados de uma chamada interceptada.

    Attributes:
        name: Nome da operação (normalmente ``func.__name__``)
        args: Argumentos posicionais, sem ``self``/``cls``
        kwargs: Argumentos somente-nomeados e extras de ``**kwargs``
        return_type: Anotação de retorno declarada (None se ausente)
        qualname: Nome qualificado, usado apenas em logs
        arguments: Valor de cada parâmetro nomeado da assinatura
    """

    name: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    return_type: Any = None
    qualname: str | None = None
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_call(
        cls,
        func: Callable[..., Any],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        return_type: Any = _RESOLVE,
    ) -> "CallContext":
        """Constrói o contexto a partir da função e dos argumentos recebidos.

        Os argumentos são ligados à assinatura com os defaults aplicados,
        então ``find(1)``, ``find(customer_id=1)`` e ``find(1, order_id=0)``
        produzem o mesmo contexto. Parâmetros que aceitam posição entram em
        ``args`` na ordem da assinatura; somente-nomeados e extras ficam em
        ``kwargs``. ``self``/``cls`` são removidos, de modo que instâncias
        diferentes compartilhem as mesmas chaves.

        Args:
            func: Função interceptada
            args: Argumentos posicionais recebidos
            kwargs: Argumentos nomeados recebidos
            return_type: Anotação de retorno já resolvida (resolve a partir de func se omitido)
        """
        if return_type is _RESOLVE:
            return_type = declared_return_type(func)

        bound = _bind_arguments(func, args, kwargs)
        if bound is None:
            call_args, call_kwargs, arguments = _filter_method_args(func, args), dict(kwargs), {}
        else:
            call_args, call_kwargs, arguments = bound

        return cls(
            name=getattr(func, "__name__", "call"),
            args=call_args,
            kwargs=call_kwargs,
            return_type=return_type,
            qualname=getattr(func, "__qualname__", None),
            arguments=arguments,
        )


def _bind_arguments(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> tuple[tuple[Any, ...], dict[str, Any], dict[str, Any]] | None:
    """Normaliza os argumentos pela assinatura; None se não for possível ligá-los."""
    try:
        sig = inspect.signature(func)
        bound = sig.bind(*args, **kwargs)
    except (ValueError, TypeError):
        return None
    bound.apply_defaults()

    call_args: list[Any] = []
    call_kwargs: dict[str, Any] = {}
    arguments: dict[str, Any] = {}
    for index, (param_name, value) in enumerate(bound.arguments.items()):
        param = sig.parameters[param_name]
        if index == 0 and param_name in ("self", "cls"):
            continue
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            call_args.extend(value)
        elif param.kind is inspect.Parameter.VAR_KEYWORD:
            call_kwargs.update(value)
        elif param.kind is inspect.Parameter.KEYWORD_ONLY:
            call_kwargs[param_name] = value
            arguments[param_name] = value
        else:
            call_args.append(value)
            arguments[param_name] = value
    return tuple(call_args), call_kwargs, arguments


def _filter_method_args(func: Callable[..., Any], args: tuple[Any, ...]) -> tuple[Any, ...]:
    """Remove 'self' ou 'cls' dos argumentos de métodos."""
    if not args:
        return args

    try:
        sig = inspect.signature(func)
        params = list(sig.parameters.keys())
        if params and params[0] in ("self", "cls"):
            return args[1:]
    except (ValueError, TypeError):
        pass

    return args


def declared_return_type(func: Callable[..., Any]) -> Any:
    """Obtém a anotação de retorno da função, resolvendo forward references."""
    try:
        return typing.get_type_hints(func).get("return")
    except Exception as e:
        # Anotações que não resolvem tornam a chamada não cacheável
        logger.debug(f"Não foi possível resolver anotações de {getattr(func, '__qualname__', func)!r}: {e}")
        annotation = getattr(func, "__annotations__", {}).get("return")
        return None if isinstance(annotation, str) else annotation


def resolve_entity_type(annotation: Any) -> type | None:
    """Resolve o tipo de entidade produzido por uma anotação de retorno.

    - ``Order`` resolve para ``Order``
    - ``list[Order]``, ``set[Order]``, ``tuple[Order, ...]``, ``Sequence[Order]`` resolvem para ``Order``
    - ``Order | None`` resolve para ``Order``

    Qualquer outra forma (``Any``, dicts, uniões de vários tipos, coleções
    sem parâmetro) resulta em None.
    """
    if annotation is None or annotation is type(None) or annotation is Any:
        return None

    origin = typing.get_origin(annotation)

    if origin is None:
        if isinstance(annotation, type) and annotation not in _COLLECTION_ORIGINS and annotation is not dict:
            return annotation
        return None

    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) != 1:
            return None
        return resolve_entity_type(members[0])

    if origin in _COLLECTION_ORIGINS:
        element_args = typing.get_args(annotation)
        if origin is tuple:
            # Apenas tuple[X, ...] é homogênea
            if len(element_args) != 2 or element_args[1] is not Ellipsis:
                return None
            element_args = element_args[:1]
        if len(element_args) != 1:
            return None
        element = element_args[0]
        if isinstance(element, type) and typing.get_origin(element) is None and element not in (dict, Any):
            return element
        return None

    return None


def is_collection(value: Any) -> bool:
    """Verifica se o valor é uma coleção de entidades (str, bytes e dict não contam)."""
    return isinstance(value, _RUNTIME_COLLECTIONS)


def runtime_entity_type(value: Any) -> type | None:
    """Infere o tipo de entidade de um valor em runtime.

    Coleções não vazias usam o tipo do primeiro elemento; coleções vazias
    e None não têm tipo.
    """
    if value is None:
        return None
    if is_collection(value):
        first = next(iter(value), None)
        return type(first) if first is not None else None
    return type(value)


def is_subtype(candidate: Any, declared: Any) -> bool:
    """Verifica se ``candidate`` é igual a ``declared`` ou subtipo dele."""
    if candidate == declared:
        return True
    if isinstance(candidate, type) and isinstance(declared, type):
        return issubclass(candidate, declared)
    return False


def region_name_for(entity_type: Any) -> str:
    """Nome estável da região de cache de um tipo de entidade."""
    if isinstance(entity_type, type):
        return f"{entity_type.__module__}.{entity_type.__qualname__}"
    return str(entity_type)
