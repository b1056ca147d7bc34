"""Cache of schemas already ensured on a connection.

Executors create schemas on demand before creating partitions in them. The
cache remembers which (connection, schema) pairs were ensured so the create
statement runs once per pair. It is owned by the caller and passed in; the
planning core never reads it.
"""

from __future__ import annotations

from typing import Callable

from partition_topology.observability import get_logger

logger = get_logger()

SchemaCreator = Callable[[str, str], None]


class SchemaCache:
    """Remembers ensured schemas per connection.

    Args:
        create_schema: Called as create_schema(connection, schema) the first
            time a pair is ensured. Errors propagate and leave the pair
            uncached.
        default_connection: Connection used when none is given.

    Example:
        >>> created = []
        >>> cache = SchemaCache(lambda conn, schema: created.append((conn, schema)))
        >>> cache.ensure("archive"), cache.ensure("archive")
        (True, False)
        >>> created
        [('default', 'archive')]
    """

    def __init__(self, create_schema: SchemaCreator, default_connection: str = "default") -> None:
        self._create_schema = create_schema
        self.default_connection = default_connection
        self._ensured: set[tuple[str, str]] = set()

    def _key(self, schema: str, connection: str | None) -> tuple[str, str]:
        return (connection or self.default_connection, schema)

    def is_cached(self, schema: str, connection: str | None = None) -> bool:
        return self._key(schema, connection) in self._ensured

    def ensure(self, schema: str, connection: str | None = None) -> bool:
        """Create the schema unless it was already ensured.

        Returns:
            True if the creator was called, False on a cache hit.
        """
        key = self._key(schema, connection)
        if key in self._ensured:
            return False
        self._create_schema(*key)
        self._ensured.add(key)
        logger.debug("schema_ensured", connection=key[0], schema=schema)
        return True

    def ensure_and_prefix(self, table: str, schema: str | None, connection: str | None = None) -> str:
        """Ensure schema exists and return the table name qualified with it.

        Without a schema the table name is returned unchanged.
        """
        if not schema:
            return table
        self.ensure(schema, connection)
        return f"{schema}.{table}"

    def flush(self) -> None:
        """Forget every ensured schema."""
        count = len(self._ensured)
        self._ensured.clear()
        logger.debug("schema_cache_flushed", entries=count)

    def __len__(self) -> int:
        return len(self._ensured)
