"""Backend para o Dapr State Store via API HTTP do sidecar."""

import asyncio
import base64
import binascii
import logging
from threading import Lock
from typing import Any

import httpx

from .config import CacheSettings
from .exceptions import CacheConnectionError, CacheKeyError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

_SUCCESS_WRITE = (200, 201, 204)
_SUCCESS_DELETE = (200, 204)


class DaprStateBackend:
    """Cliente do Dapr State Store usando a API HTTP direta.

    Oferece métodos sync e async com a mesma interface:
    - GET /v1.0/state/{storename}/{key} - buscar valor
    - POST /v1.0/state/{storename} - salvar valor(es)
    - DELETE /v1.0/state/{storename}/{key} - deletar valor

    Os valores trafegam em base64. Falhas de conexão levantam
    CacheConnectionError; timeouts são registrados e tratados como
    ausência de valor ou escrita não realizada.

    Attributes:
        store_name: Nome do state store configurado no Dapr
        timeout: Timeout para operações HTTP em segundos
    """

    def __init__(
        self,
        store_name: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        dapr_url: str | None = None,
    ) -> None:
        """Inicializa o backend.

        Args:
            store_name: Nome do state store Dapr
            timeout: Timeout para operações HTTP
            dapr_url: URL do sidecar (usa variáveis de ambiente se não fornecido)

        Raises:
            CacheKeyError: Se store_name for vazio
        """
        if not store_name:
            raise CacheKeyError("store_name não pode ser vazio")

        self._store_name = store_name
        self._timeout = timeout
        self._base_url = dapr_url or CacheSettings.dapr_url()

        self._sync_client: httpx.Client | None = None
        self._async_client: httpx.AsyncClient | None = None
        self._sync_client_lock = Lock()
        # Criado sob demanda: pode não existir event loop na construção
        self._async_client_lock: asyncio.Lock | None = None

    @property
    def store_name(self) -> str:
        """Nome do state store."""
        return self._store_name

    @property
    def base_url(self) -> str:
        """URL base do sidecar."""
        return self._base_url

    def _get_sync_client(self) -> httpx.Client:
        if self._sync_client is None:
            with self._sync_client_lock:
                if self._sync_client is None:
                    self._sync_client = httpx.Client(base_url=self._base_url, timeout=self._timeout)
        return self._sync_client

    async def _get_async_client(self) -> httpx.AsyncClient:
        if self._async_client_lock is None:
            self._async_client_lock = asyncio.Lock()
        if self._async_client is None:
            async with self._async_client_lock:
                if self._async_client is None:
                    self._async_client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
        return self._async_client

    def _state_url(self, key: str | None = None) -> str:
        if key:
            return f"/v1.0/state/{self._store_name}/{key}"
        return f"/v1.0/state/{self._store_name}"

    @staticmethod
    def _encode_value(value: bytes) -> str:
        return base64.b64encode(value).decode("ascii")

    @staticmethod
    def _decode_value(data: Any) -> bytes | None:
        if data is None:
            return None
        if isinstance(data, bytes):
            return data
        if isinstance(data, str):
            # O Dapr devolve o valor salvo como string JSON
            text = data.strip()
            if len(text) >= 2 and text[0] == text[-1] == '"':
                text = text[1:-1]
            try:
                return base64.b64decode(text, validate=True)
            except (binascii.Error, ValueError):
                return text.encode("utf-8")
        return None

    def _save_payload(self, key: str, value: bytes) -> list[dict[str, Any]]:
        return [{"key": key, "value": self._encode_value(value)}]

    def _parse_get_response(self, key: str, response: httpx.Response) -> bytes | None:
        if response.status_code == 204 or not response.content:
            logger.debug(f"Estado ausente para chave: {key}")
            return None

        if response.status_code == 200:
            try:
                return self._decode_value(response.content.decode("utf-8"))
            except UnicodeDecodeError as e:
                logger.warning(f"Erro ao decodificar resposta para chave {key}: {e}")
                return None

        logger.warning(f"Resposta inesperada do Dapr: {response.status_code}")
        return None

    # ========== Métodos Síncronos ==========

    def get(self, key: str) -> bytes | None:
        """Busca valor do state store.

        Returns:
            Valor em bytes ou None se não encontrado

        Raises:
            CacheKeyError: Se a chave for vazia
            CacheConnectionError: Se não conseguir conectar ao sidecar
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        try:
            response = self._get_sync_client().get(self._state_url(key))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout ao buscar chave {key}: {e}")
            return None

        return self._parse_get_response(key, response)

    def set(self, key: str, value: bytes) -> bool:
        """Armazena valor no state store.

        Returns:
            True se armazenado com sucesso

        Raises:
            CacheKeyError: Se a chave for vazia
            CacheConnectionError: Se não conseguir conectar ao sidecar
        """
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        try:
            response = self._get_sync_client().post(self._state_url(), json=self._save_payload(key, value))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout ao salvar chave {key}: {e}")
            return False

        if response.status_code in _SUCCESS_WRITE:
            return True
        logger.warning(f"Falha ao salvar estado: {response.status_code}")
        return False

    def delete(self, key: str) -> bool:
        """Remove valor do state store.

        Returns:
            True se removido com sucesso
        """
        if not key:
            return False

        try:
            response = self._get_sync_client().delete(self._state_url(key))
        except httpx.HTTPError as e:
            logger.warning(f"Erro ao deletar chave {key}: {e}")
            return False

        return response.status_code in _SUCCESS_DELETE

    # ========== Métodos Assíncronos ==========

    async def get_async(self, key: str) -> bytes | None:
        """Busca valor do state store (assíncrono)."""
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        try:
            client = await self._get_async_client()
            response = await client.get(self._state_url(key))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout ao buscar chave {key}: {e}")
            return None

        return self._parse_get_response(key, response)

    async def set_async(self, key: str, value: bytes) -> bool:
        """Armazena valor no state store (assíncrono)."""
        if not key:
            raise CacheKeyError("Chave não pode ser vazia", key=key)

        try:
            client = await self._get_async_client()
            response = await client.post(self._state_url(), json=self._save_payload(key, value))
        except httpx.ConnectError as e:
            raise CacheConnectionError(f"Não foi possível conectar ao sidecar Dapr: {e}", key=key) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout ao salvar chave {key}: {e}")
            return False

        if response.status_code in _SUCCESS_WRITE:
            return True
        logger.warning(f"Falha ao salvar estado: {response.status_code}")
        return False

    async def delete_async(self, key: str) -> bool:
        """Remove valor do state store (assíncrono)."""
        if not key:
            return False

        try:
            client = await self._get_async_client()
            response = await client.delete(self._state_url(key))
        except httpx.HTTPError as e:
            logger.warning(f"Erro ao deletar chave {key}: {e}")
            return False

        return response.status_code in _SUCCESS_DELETE

    # ========== Gerenciamento de Recursos ==========

    def close(self) -> None:
        """Fecha o cliente HTTP síncrono."""
        if self._sync_client is not None:
            self._sync_client.close()
            self._sync_client = None

    async def aclose(self) -> None:
        """Fecha o cliente HTTP assíncrono."""
        if self._async_client is not None:
            await self._async_client.aclose()
            self._async_client = None

    def __enter__(self) -> "DaprStateBackend":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    async def __aenter__(self) -> "DaprStateBackend":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()
