import asyncio
import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

import aiohttp
from pydantic import ValidationError

from cart_rewards.config import settings
from cart_rewards.models.schemas import StoreCreate, StoreRecord

logger = logging.getLogger(__name__)


class StoreDirectoryError(Exception):
    """Raised when the Store Directory API cannot be reached or answers with an error"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class StoreDirectory(Protocol):
    """Read and create operations over store records"""

    async def get_store(self, shopify_store_id: str) -> Optional[StoreRecord]:
        ...

    async def create_store(self, store: StoreCreate) -> StoreRecord:
        ...


class StoreDirectoryClient:
    """
    aiohttp client for the Store Directory API

    GET /api/stores/{shopifyStoreId} returns a store record or 404;
    POST /api/stores creates one. A 404 on read is reported as None, every
    other failure as StoreDirectoryError.
    """

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = (base_url or settings.DIRECTORY_API_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.DIRECTORY_REQUEST_TIMEOUT)
        self.headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "StoreDirectoryClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self.headers, timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def get_store(self, shopify_store_id: str) -> Optional[StoreRecord]:
        """Fetch a store record by Shopify store id, None when the directory has no such store"""
        url = f"{self.base_url}/api/stores/{quote(shopify_store_id, safe='')}"
        try:
            async with self._get_session().get(url) as response:
                if response.status == 404:
                    logger.info(f"Store {shopify_store_id} not found in directory")
                    return None
                if response.status >= 400:
                    raise StoreDirectoryError(
                        f"Failed to fetch store: {response.status} {response.reason}",
                        status_code=response.status
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreDirectoryError(f"Failed to fetch store: {e}") from e

        return self._parse_store(payload)

    async def create_store(self, store: StoreCreate) -> StoreRecord:
        """Create a store record, returning the record as stored by the directory"""
        url = f"{self.base_url}/api/stores"
        body = store.model_dump(by_alias=True, include={"shopify_store_id", "store_name", "access_token"})
        try:
            async with self._get_session().post(url, json=body) as response:
                if response.status >= 400:
                    detail = await response.text()
                    raise StoreDirectoryError(
                        f"Failed to create store: {response.status} {detail or response.reason}",
                        status_code=response.status
                    )
                payload = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise StoreDirectoryError(f"Failed to create store: {e}") from e

        logger.info(f"Created store {store.shopify_store_id} in directory")
        return self._parse_store(payload)

    @staticmethod
    def _parse_store(payload: Any) -> StoreRecord:
        try:
            return StoreRecord.model_validate(payload)
        except ValidationError as e:
            raise StoreDirectoryError(f"Malformed store record: {e.error_count()} invalid field(s)") from e
