"""
Redis store client.

This module provides the connection to the Redis server holding the metric
series. It owns the connection lifecycle, bounds every round trip with a
deadline and retries transient failures with exponential backoff.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional, Tuple, TypeVar, Union

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import DataError, RedisError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from sensor_metrics.observability.metrics import (
    record_store_failure,
    record_store_retry,
    track_store_operation,
)
from sensor_metrics.storage.interfaces import (
    StoreKey,
    StoreRequestRejected,
    StoreUnavailable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors worth another attempt. Everything else the server answers with is a
# malformed request and is surfaced at once.
TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError)
REJECTED_ERRORS = (ResponseError, DataError)

# Adds ARGV[2] to the value stored at score ARGV[1], creating it if missing.
# Members are "{score}|{value}", matching MetricKeyCodec.encode_member.
INCREMENT_SCRIPT = """
local key = KEYS[1]
local score = ARGV[1]
local amount = tonumber(ARGV[2])
local current = 0
local existing = redis.call('ZRANGEBYSCORE', key, score, score)
if #existing > 0 then
    current = tonumber(string.match(existing[#existing], '|(.*)$')) or 0
    redis.call('ZREMRANGEBYSCORE', key, score, score)
end
local total = current + amount
local formatted = string.format('%.17g', total)
redis.call('ZADD', key, score, score .. '|' .. formatted)
return formatted
"""


class RedisStoreClient:
    """
    Shared, lazily connected Redis client for series storage.

    Every series is a sorted set; a StoreKey addresses one score inside it.
    The underlying connection pool is safe to share between concurrent
    queries, so no locking happens here.
    """

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        password: Optional[str] = None,
        max_attempts: int = 3,
        backoff_base: float = 0.1,
        max_backoff: float = 2.0,
        operation_timeout: float = 5.0,
        max_connections: int = 50,
        client_factory: Optional[Callable[[], Redis]] = None,
    ):
        """
        Initialize the store client. No connection is made until first use.

        Args:
            url: Redis connection URL
            password: Optional authentication password
            max_attempts: Attempts per operation before giving up
            backoff_base: Delay before the first retry, doubled for each further one
            max_backoff: Upper bound for a single retry delay
            operation_timeout: Deadline in seconds for one round trip
            max_connections: Maximum number of connections in the pool
            client_factory: Builds the underlying client (used by tests)
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.url = url
        self.password = password
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.max_backoff = max_backoff
        self.operation_timeout = operation_timeout
        self.max_connections = max_connections
        self._client_factory = client_factory or self._create_client
        self._client: Optional[Redis] = None
        self._increment_script = None

    def _create_client(self) -> Redis:
        return aioredis.from_url(
            self.url,
            password=self.password,
            decode_responses=True,
            max_connections=self.max_connections,
            socket_timeout=self.operation_timeout,
            socket_connect_timeout=self.operation_timeout,
        )

    @property
    def display_url(self) -> str:
        """Connection URL without credentials, for logs."""
        scheme, sep, rest = self.url.partition("://")
        return f"{scheme}{sep}{rest.rsplit('@', 1)[-1]}"

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def _get_client(self) -> Redis:
        if self._client is None:
            self._client = self._client_factory()
            self._increment_script = None
            logger.info(f"Opened Redis client for {self.display_url}")
        return self._client

    async def _reset_client(self, client: Redis):
        """
        Drop a broken client; the next call reconnects.

        Concurrent operations share the client, so several of them may fail on
        the same broken one. Only the first resets it; a client another
        operation has already replaced is left alone.
        """
        if self._client is not client:
            return
        self._client = None
        self._increment_script = None
        try:
            await client.aclose()
        except (RedisError, OSError) as e:
            logger.debug(f"Error closing broken Redis client: {e}")

    def _backoff(self, attempt: int) -> float:
        return min(self.backoff_base * (2 ** attempt), self.max_backoff)

    async def _execute(self, operation: str, command: Callable[[Redis], Awaitable[T]]) -> T:
        """
        Run one store command with deadline and retry policy.

        Args:
            operation: Operation name for logs and metrics
            command: Coroutine function issuing the command on a client

        Returns:
            The command result

        Raises:
            StoreUnavailable: If every attempt failed transiently
            StoreRequestRejected: If the server rejected the request
        """
        last_error: Optional[BaseException] = None

        for attempt in range(self.max_attempts):
            client = await self._get_client()
            try:
                return await asyncio.wait_for(command(client), timeout=self.operation_timeout)

            except REJECTED_ERRORS as e:
                logger.error(f"Store rejected {operation}: {e}")
                record_store_failure(operation, "rejected")
                raise StoreRequestRejected(f"Store rejected {operation}: {e}") from e

            except TRANSIENT_ERRORS as e:
                last_error = e
                logger.warning(
                    f"Store {operation} failed (attempt {attempt + 1}/{self.max_attempts}): {e!r}"
                )
                await self._reset_client(client)

                if attempt < self.max_attempts - 1:
                    record_store_retry(operation)
                    await asyncio.sleep(self._backoff(attempt))

        record_store_failure(operation, "unavailable")
        raise StoreUnavailable(
            f"Store {operation} failed after {self.max_attempts} attempts: {last_error!r}"
        ) from last_error

    @staticmethod
    def _decode(data: Union[str, bytes]) -> str:
        return data.decode("utf-8") if isinstance(data, bytes) else data

    @track_store_operation("get")
    async def get(self, key: StoreKey) -> Optional[str]:
        """
        Get the member stored at a key.

        Args:
            key: Series key and score

        Returns:
            The stored member, or None if absent
        """

        async def command(client: Redis) -> List[Any]:
            return await client.zrangebyscore(key.series_key, key.score, key.score)

        members = await self._execute("get", command)
        if not members:
            return None
        return self._decode(members[-1])

    @track_store_operation("range_scan")
    async def range_scan(self, lower: StoreKey, upper: StoreKey) -> List[Tuple[StoreKey, str]]:
        """
        Scan all members with lower.score <= score < upper.score.

        Args:
            lower: Inclusive lower bound
            upper: Exclusive upper bound, same series key as `lower`

        Returns:
            (key, member) pairs in ascending score order

        Raises:
            StoreRequestRejected: If the bounds belong to different series
        """
        if lower.series_key != upper.series_key:
            raise StoreRequestRejected(
                f"Range bounds span two series: {lower.series_key!r} / {upper.series_key!r}"
            )
        if upper.score <= lower.score:
            return []

        async def command(client: Redis) -> List[Any]:
            return await client.zrangebyscore(
                lower.series_key,
                lower.score,
                f"({upper.score}",
                withscores=True,
            )

        rows = await self._execute("range_scan", command)
        return [
            (StoreKey(lower.series_key, int(score)), self._decode(member))
            for member, score in rows
        ]

    @track_store_operation("put")
    async def put(self, key: StoreKey, value: str) -> None:
        """
        Store a member at a key, replacing whatever sits at the same score.

        Both steps run in one MULTI/EXEC transaction.
        """

        async def command(client: Redis) -> List[Any]:
            async with client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key.series_key, key.score, key.score)
                pipe.zadd(key.series_key, {value: key.score})
                return await pipe.execute()

        await self._execute("put", command)
        logger.debug(f"Stored {key.series_key}@{key.score}")

    @track_store_operation("increment")
    async def increment(self, key: StoreKey, amount: float) -> float:
        """
        Atomically add `amount` to the value at a key (0 if absent).

        Returns:
            The new value
        """

        async def command(client: Redis) -> Any:
            if self._increment_script is None:
                self._increment_script = client.register_script(INCREMENT_SCRIPT)
            return await self._increment_script(keys=[key.series_key], args=[key.score, amount])

        result = await self._execute("increment", command)
        return float(self._decode(result))

    async def ping(self) -> bool:
        """Check the store answers. Never raises."""
        try:
            return bool(await self._execute("ping", lambda client: client.ping()))
        except (StoreUnavailable, StoreRequestRejected) as e:
            logger.warning(f"Store ping failed: {e}")
            return False

    async def close(self):
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            self._increment_script = None
            logger.info("Redis connection closed")
