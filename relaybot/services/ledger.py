"""Fair rotation of search credentials by persisted use count."""
import asyncio
import logging

from relaybot.db.repository import KeyValueStore
from relaybot.exceptions import NoCredentialsConfigured, PersistenceError
from relaybot.logging_config import mask_secret

logger = logging.getLogger(__name__)

USAGE_KEY = "tavily_usage"


class UsageLedger:
    """Tracks how often each credential was used and hands out the least used one.

    One instance is shared by every conversation in the process. Selection
    and increment happen under a single ``asyncio.Lock`` so two concurrent
    searches never both pick the same "least used" credential.
    """

    def __init__(
        self,
        credentials: list[str],
        store: KeyValueStore,
        key: str = USAGE_KEY,
    ):
        self.credentials = list(credentials)
        self.store = store
        self.key = key
        self._lock = asyncio.Lock()

    async def initialize(self) -> dict[str, int]:
        """Load the record once at startup, creating it when absent."""
        try:
            raw = await asyncio.to_thread(self.store.get, self.key)
        except PersistenceError as e:
            logger.error(f"Failed to read usage record: {e}")
            return self._zeroed()

        if raw is None:
            logger.info("Creating usage record for Tavily API keys")
            usage = self._zeroed()
            await self._save(usage)
            return usage

        return self._normalize(raw)

    async def load(self) -> dict[str, int]:
        """Read the usage record; every configured credential has an entry."""
        usage, _ = await self._read()
        return usage

    async def select_credential(self) -> str:
        """Return the least used credential without charging it.

        Only a hint: another search may charge the same credential before
        the caller does. Searches go through :meth:`acquire`.
        """
        self._require_credentials()
        async with self._lock:
            usage, _ = await self._read()
        return self._least_used(usage)

    async def record_use(self, credential: str) -> int:
        """Charge one use to ``credential`` and persist before returning."""
        async with self._lock:
            usage, readable = await self._read()
            usage[credential] = usage.get(credential, 0) + 1
            if readable:
                await self._save(usage)
            else:
                logger.warning(
                    f"Use of {mask_secret(credential)} not recorded, usage record unreadable"
                )
            return usage[credential]

    async def acquire(self) -> str:
        """Select the least used credential and charge it, atomically."""
        self._require_credentials()
        async with self._lock:
            usage, readable = await self._read()
            selected = self._least_used(usage)
            usage[selected] += 1
            if readable:
                await self._save(usage)

        if not readable:
            logger.warning(
                f"Using Tavily key {mask_secret(selected)}, use not recorded: usage record unreadable"
            )
        else:
            logger.info(
                f"Using Tavily key {mask_secret(selected)}, "
                f"total uses of this key: {usage[selected]}"
            )
        return selected

    async def _read(self) -> tuple[dict[str, int], bool]:
        """Load the record; the flag is False when it could not be read.

        An unreadable record yields zero counts for this call only and must
        never be written back, or the stored counts would be lost.
        """
        try:
            raw = await asyncio.to_thread(self.store.get, self.key)
        except PersistenceError as e:
            logger.error(f"Failed to read usage record, using zero counts: {e}")
            return self._zeroed(), False
        return self._normalize(raw or {}), True

    def _require_credentials(self) -> None:
        if not self.credentials:
            raise NoCredentialsConfigured("No Tavily API keys configured")

    def _least_used(self, usage: dict[str, int]) -> str:
        # min() keeps the first of equal counts, so ties follow configured order
        return min(self.credentials, key=lambda credential: usage[credential])

    def _zeroed(self) -> dict[str, int]:
        return {credential: 0 for credential in self.credentials}

    def _normalize(self, raw: dict) -> dict[str, int]:
        usage: dict[str, int] = {}
        if isinstance(raw, dict):
            for credential, count in raw.items():
                try:
                    usage[str(credential)] = max(int(count), 0)
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring bad usage count for {mask_secret(str(credential))}")
        for credential in self.credentials:
            usage.setdefault(credential, 0)
        return usage

    async def _save(self, usage: dict[str, int]) -> None:
        try:
            await asyncio.to_thread(self.store.put, self.key, usage)
        except PersistenceError as e:
            logger.error(f"Failed to save usage record: {e}")
