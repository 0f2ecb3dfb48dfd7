"""
Store bootstrap

Maps the storefront's Shopify configuration to an internal store record:
fetch it from the Store Directory API, create it on first use, and memoize
the resolved id in a key-value cache. Failures never raise out of resolve();
they come back in the ResolutionResult.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from cart_rewards.models.schemas import (
    ErrorKind, ResolutionPhase, ResolutionResult, StoreConfig, StoreCreate, StoreRecord
)
from cart_rewards.services.cache import KeyValueCache, RESOLVED_STORE_ID_KEY
from cart_rewards.services.store_directory import StoreDirectory, StoreDirectoryClient

logger = logging.getLogger(__name__)

PRODUCTION_CONFIG_ERROR = (
    "Store configuration not available in production mode. Store should exist in database."
)


@dataclass
class ResolutionState:
    cached_store_id: Optional[str] = None
    in_flight_create: bool = False
    last_error: Optional[ErrorKind] = None
    phase: ResolutionPhase = ResolutionPhase.IDLE
    store: Optional[StoreRecord] = None
    error_message: Optional[str] = None


class StoreResolver:
    """
    One resolver per cart drawer or admin session.

    Phases: idle -> fetching -> found, or fetching -> creating -> created | failed.
    All calls are expected on a single event loop; the in-flight flag is set
    before the create's first await, so concurrent resolve() calls never issue
    a second create.
    """

    def __init__(self, config: StoreConfig, directory: StoreDirectory, cache: KeyValueCache):
        self.config = config
        self.directory = directory
        self.cache = cache
        self.state = ResolutionState(cached_store_id=cache.get(RESOLVED_STORE_ID_KEY))
        self._pending_fetches = 0
        self._found_during_create = False
        self._closed = False

        if self.state.cached_store_id:
            logger.info(f"Using cached store id {self.state.cached_store_id} until resolution completes")

    @property
    def result(self) -> ResolutionResult:
        """Snapshot of the current resolution state"""
        error_kind = None
        if self.state.error_message:
            error_kind = self.state.last_error

        return ResolutionResult(
            store_id=self.state.cached_store_id,
            store=self.state.store,
            is_loading=self.state.in_flight_create or self._pending_fetches > 0,
            error=self.state.error_message,
            error_kind=error_kind,
            phase=self.state.phase,
        )

    def close(self) -> None:
        """Stop applying completions; requests already sent are left to finish"""
        self._closed = True

    async def resolve(self) -> ResolutionResult:
        if self._closed:
            return self.result

        shopify_store_id = self.config.shopify_store_id
        record = None
        if shopify_store_id:
            record = await self._fetch(shopify_store_id)
            if self._closed:
                return self.result

        if record is not None:
            self._apply(record, ResolutionPhase.FOUND)
            return self.result

        if self.state.in_flight_create:
            return self.result

        if not self.config.can_create_store:
            self._configuration_error()
            return self.result

        if self.state.cached_store_id:
            # Optimistic: a cached id is kept without re-creating the store
            if self.state.phase == ResolutionPhase.FETCHING:
                self.state.phase = ResolutionPhase.IDLE
            return self.result

        return await self._create()

    async def _fetch(self, shopify_store_id: str) -> Optional[StoreRecord]:
        self._pending_fetches += 1
        if not self.state.in_flight_create:
            self.state.phase = ResolutionPhase.FETCHING
        try:
            return await self.directory.get_store(shopify_store_id)
        except Exception as e:
            self.state.last_error = ErrorKind.FETCH_ERROR
            logger.warning(f"Error fetching store {shopify_store_id}, falling back to configuration: {e}")
            return None
        finally:
            self._pending_fetches -= 1

    async def _create(self) -> ResolutionResult:
        self.state.in_flight_create = True
        self.state.phase = ResolutionPhase.CREATING
        self._found_during_create = False

        payload = StoreCreate(
            shopify_store_id=self.config.shopify_store_id,
            store_name=self.config.shopify_store_name,
            access_token=self.config.shopify_access_token,
        )
        logger.info(f"Creating store record for {payload.shopify_store_id}")

        try:
            record = await self.directory.create_store(payload)
        except Exception as e:
            self.state.in_flight_create = False
            if self._closed or self._found_during_create:
                return self.result
            self.state.last_error = ErrorKind.CREATE_ERROR
            self.state.phase = ResolutionPhase.FAILED
            self.state.error_message = f"Error creating store: {e}"
            logger.error(f"Error creating store {payload.shopify_store_id}: {e}")
            return self.result

        self.state.in_flight_create = False
        if self._closed:
            return self.result
        if self._found_during_create:
            logger.info(f"Ignoring created store {record.id}: fetched record {self.state.store.id} already applied")
            return self.result

        self._apply(record, ResolutionPhase.CREATED)
        return self.result

    def _apply(self, record: StoreRecord, phase: ResolutionPhase) -> None:
        if self.state.in_flight_create:
            self._found_during_create = True

        self.state.store = record
        self.state.phase = phase
        self.state.last_error = None
        self.state.error_message = None
        self.state.cached_store_id = record.id
        self.cache.set(RESOLVED_STORE_ID_KEY, record.id)
        logger.info(f"Resolved store {record.shopify_store_id} to {record.id} ({phase.value})")

    def _configuration_error(self) -> None:
        if self.config.is_production:
            # Incomplete production configuration invalidates any cached id
            self.cache.remove(RESOLVED_STORE_ID_KEY)
            self.state.cached_store_id = None
            message = PRODUCTION_CONFIG_ERROR
        else:
            missing = ", ".join(self.config.missing_variables)
            message = f"Missing Shopify configuration. Please set {missing} environment variable."

        self.state.last_error = ErrorKind.CONFIGURATION_ERROR
        self.state.phase = ResolutionPhase.FAILED
        self.state.error_message = message
        logger.error(message)


async def resolve(config: StoreConfig, cache: KeyValueCache,
                  directory: Optional[StoreDirectory] = None) -> ResolutionResult:
    """
    Resolve the store once

    Args:
        config: Storefront configuration
        cache: Cache holding the last resolved store id
        directory: Store Directory API client (an aiohttp client from settings when omitted)

    Returns:
        ResolutionResult: Resolved id and record, or the error that prevented resolution
    """
    if directory is not None:
        return await StoreResolver(config, directory, cache).resolve()

    async with StoreDirectoryClient() as client:
        return await StoreResolver(config, client, cache).resolve()


if __name__ == "__main__":
    from cart_rewards.config import load_store_config, settings
    from cart_rewards.services.cache import JsonFileCache

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    store_config = load_store_config()
    print(f"Resolving store '{store_config.shopify_store_id}' via {settings.DIRECTORY_API_URL}")
    outcome = asyncio.run(resolve(store_config, JsonFileCache(settings.STORE_CACHE_PATH)))

    if outcome.error:
        print(f"\n Store resolution failed ({outcome.error_kind.value}): {outcome.error}")
        exit(1)

    print(f"\n Store resolved: {outcome.store_id}")
    if outcome.store:
        print(f" Name: {outcome.store.store_name}")
