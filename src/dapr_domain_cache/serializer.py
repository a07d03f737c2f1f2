"""Serialização dos valores gravados nas regiões do state store."""

import pickle
from typing import Any

import msgpack

from .exceptions import CacheSerializationError


class MsgPackSerializer:
    """Serializer usando MessagePack.

    Adequado para regiões que guardam dados simples (dicts, listas,
    tipos primitivos). Instâncias de classes de domínio não são
    suportadas; para elas use PickleSerializer.
    """

    def serialize(self, data: Any) -> bytes:
        """Serializa dados Python para bytes MsgPack.

        Raises:
            CacheSerializationError: Se falhar ao serializar
        """
        try:
            result = msgpack.packb(data, use_bin_type=True)
            if result is None:
                raise CacheSerializationError("msgpack.packb retornou None")
            return result
        except (TypeError, ValueError) as e:
            raise CacheSerializationError(f"Falha ao serializar dados: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        """Deserializa bytes MsgPack para dados Python.

        Raises:
            CacheSerializationError: Se falhar ao deserializar
        """
        try:
            return msgpack.unpackb(data, raw=False)
        except (msgpack.UnpackException, ValueError) as e:
            raise CacheSerializationError(f"Falha ao deserializar dados: {e}") from e


class PickleSerializer:
    """Serializer usando pickle, com fidelidade total de tipos.

    É o padrão das regiões Dapr porque as entradas são instâncias das
    entidades de domínio, e a classificação por tipo depende de
    recuperar exatamente a mesma classe.

    Atenção: pickle executa código na deserialização. Use apenas com
    state stores acessíveis somente pela própria aplicação.
    """

    def __init__(self, protocol: int = pickle.HIGHEST_PROTOCOL) -> None:
        self._protocol = protocol

    def serialize(self, data: Any) -> bytes:
        try:
            return pickle.dumps(data, protocol=self._protocol)
        except (pickle.PicklingError, TypeError, AttributeError) as e:
            raise CacheSerializationError(f"Falha ao serializar dados: {e}") from e

    def deserialize(self, data: bytes) -> Any:
        try:
            return pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, TypeError) as e:
            raise CacheSerializationError(f"Falha ao deserializar dados: {e}") from e
