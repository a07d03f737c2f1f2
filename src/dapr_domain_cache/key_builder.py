"""Geração de chaves de cache a partir do contexto da chamada."""

import logging
import string
from collections.abc import Callable
from typing import Any

from .context import CallContext
from .exceptions import KeyExpressionError

logger = logging.getLogger(__name__)

DEFAULT_KEY_SEPARATOR = "_"

_formatter = string.Formatter()


class DefaultKeyGenerator:
    """Gerador de chaves padrão.

    Com expressão vazia, sintetiza a chave a partir do nome da operação e
    da representação em string de cada argumento posicional, na ordem:
    ``get_order_42``. Argumentos somente-nomeados entram depois dos
    posicionais como ``nome=valor``, ordenados pelo nome:
    ``find_1_page=2_status=open``.

    Com expressão explícita, avalia um template de formatação contra os
    argumentos da chamada. Variáveis disponíveis:

    - ``arg0``, ``arg1``, ...: argumentos posicionais
    - ``{0}``, ``{1}``, ...: os mesmos argumentos, por índice
    - nomes dos parâmetros da função, passados por posição ou por nome
    - ``args`` e ``kwargs``

    Um template formado por um único campo (``"{arg0}"``, ``"{arg0.id}"``)
    retorna o valor avaliado sem conversão; qualquer outro retorna string.
    Callables recebem ``*args, **kwargs`` e retornam a chave.

    Example:
        ```python
        generator = DefaultKeyGenerator()
        ctx = CallContext(name="get_order", args=(42,))

        generator.generate_key("", ctx)                 # "get_order_42"
        generator.generate_key("order:{arg0}", ctx)     # "order:42"
        generator.generate_key("{arg0}", ctx)           # 42
        ```
    """

    def __init__(self, separator: str = DEFAULT_KEY_SEPARATOR) -> None:
        """Inicializa o gerador.

        Args:
            separator: Separador da chave padrão (default: "_")

        Raises:
            ValueError: Se separator for vazio
        """
        if not separator:
            raise ValueError("Separador não pode ser vazio")
        self._separator = separator

    @property
    def separator(self) -> str:
        """Separador usado na chave padrão."""
        return self._separator

    def generate_key(self, expression: str | Callable[..., Any] | None, context: CallContext) -> Any | None:
        """Gera chave de cache.

        Args:
            expression: Template, callable ou vazio para chave padrão
            context: Contexto da chamada

        Returns:
            Chave gerada; None significa "sem chave"

        Raises:
            KeyExpressionError: Se a expressão explícita falhar
        """
        if callable(expression):
            return self._call_expression(expression, context)

        if expression is None or (isinstance(expression, str) and not expression.strip()):
            return self.default_key(context)

        if not isinstance(expression, str):
            raise KeyExpressionError(f"Expressão de chave inválida: {expression!r}")

        return self._evaluate(expression, context)

    def default_key(self, context: CallContext) -> str:
        """Chave sintetizada a partir do nome e dos argumentos."""
        parts = [context.name]
        parts.extend(str(arg) for arg in context.args)
        parts.extend(f"{name}={value}" for name, value in sorted(context.kwargs.items()))
        return self._separator.join(parts)

    def _call_expression(self, expression: Callable[..., Any], context: CallContext) -> Any | None:
        try:
            return expression(*context.args, **context.kwargs)
        except Exception as e:
            raise KeyExpressionError(
                f"Falha ao avaliar chave para {context.name}: {e}",
                expression=getattr(expression, "__name__", repr(expression)),
            ) from e

    def _evaluate(self, expression: str, context: CallContext) -> Any | None:
        variables = self._variables(context)
        try:
            parsed = list(_formatter.parse(expression))
            if self._is_single_field(parsed):
                field_name = parsed[0][1]
                value, _ = _formatter.get_field(field_name, context.args, variables)
                return value
            return _formatter.vformat(expression, context.args, variables)
        except (KeyError, AttributeError, IndexError, ValueError, TypeError) as e:
            raise KeyExpressionError(
                f"Falha ao avaliar expressão de chave '{expression}' para {context.name}: {e!r}",
                expression=expression,
            ) from e

    @staticmethod
    def _is_single_field(parsed: list[tuple[str, str | None, str | None, str | None]]) -> bool:
        if len(parsed) != 1:
            return False
        literal_text, field_name, format_spec, conversion = parsed[0]
        return literal_text == "" and bool(field_name) and not format_spec and conversion is None

    @staticmethod
    def _variables(context: CallContext) -> dict[str, Any]:
        variables: dict[str, Any] = {"args": context.args, "kwargs": context.kwargs}
        variables.update(context.arguments)
        variables.update(context.kwargs)
        for index, arg in enumerate(context.args):
            variables[f"arg{index}"] = arg
        return variables
