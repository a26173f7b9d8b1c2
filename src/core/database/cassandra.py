"""Cassandra connection and schema bootstrap.

Uses cassandra-asyncio-driver, whose session adds ``aexecute()`` on top of
the regular cassandra-driver API. Repositories prepare statements with the
synchronous ``prepare()`` at construction time and run them with
``await session.aexecute(...)``.
"""

from typing import Any

from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy

from src.config.settings import get_settings
from src.core.logging import get_logger
from src.courses.models import COURSES_TABLES_CQL
from src.enrollments.models import ENROLLMENTS_TABLES_CQL
from src.payments.models import PAYMENTS_TABLES_CQL


logger = get_logger(__name__)

SCHEMA: dict[str, list[str]] = {
    "courses": COURSES_TABLES_CQL,
    "enrollments": ENROLLMENTS_TABLES_CQL,
    "payments": PAYMENTS_TABLES_CQL,
}


class CassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Any = None
    _session: Any = None

    @classmethod
    def connect(cls) -> Any:
        """Connect to the cluster, reusing an existing session.

        Raises:
            ConnectionError: If the cluster cannot be reached.
        """
        if cls._session is not None:
            return cls._session

        # Deferred so modules that only need table definitions stay light
        from cassandra_asyncio.cluster import Cluster  # noqa: PLC0415

        settings = get_settings()

        auth_provider = None
        if settings.cassandra_username and settings.cassandra_password:
            auth_provider = PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )

        cls._cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            cls._session = cls._cluster.connect()
        except Exception as e:
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return cls._session

    @classmethod
    def disconnect(cls) -> None:
        """Shut down session and cluster."""
        if cls._session is not None:
            cls._session.shutdown()
            cls._session = None
        if cls._cluster is not None:
            cls._cluster.shutdown()
            cls._cluster = None
            logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        """Check if a live session exists."""
        return cls._session is not None and not cls._session.is_shutdown


async def init_keyspace(session: Any, keyspace: str) -> None:
    """Create the keyspace if missing."""
    settings = get_settings()

    if settings.is_production:
        replication = "'class': 'NetworkTopologyStrategy', 'datacenter1': 3"
    else:
        replication = "'class': 'SimpleStrategy', 'replication_factor': 1"

    await session.aexecute(
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {{{replication}}} AND durable_writes = true"
    )
    logger.info("keyspace_ready", keyspace=keyspace)


async def init_tables(session: Any, keyspace: str) -> None:
    """Create every table the application uses."""
    for group, statements in SCHEMA.items():
        for cql_template in statements:
            await session.aexecute(cql_template.format(keyspace=keyspace))
        logger.info("tables_ready", group=group, keyspace=keyspace)


async def init_cassandra() -> Any:
    """Connect, then create keyspace and tables.

    Returns:
        Session with ``aexecute()`` support, bound to the keyspace.
    """
    settings = get_settings()
    session = CassandraConnection.connect()
    await init_keyspace(session, settings.cassandra_keyspace)
    session.set_keyspace(settings.cassandra_keyspace)
    await init_tables(session, settings.cassandra_keyspace)
    return session


async def shutdown_cassandra() -> None:
    """Close the Cassandra connection."""
    CassandraConnection.disconnect()
