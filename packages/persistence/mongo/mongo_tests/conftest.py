"""Test configuration for the MongoDB adapter."""

import pytest

from joinery_mongo import MongoConnectionManager, MongoDatabase

pytest_plugins = ["pytest_asyncio"]


@pytest.fixture
async def mongo_connection():
    """Create a MongoDB connection for testing."""
    # Use mongomock for unit tests to avoid real database dependency
    try:
        from mongomock_motor import AsyncMongoMockClient

        # Create a mock connection manager
        connection = MongoConnectionManager.__new__(MongoConnectionManager)
        connection._client = AsyncMongoMockClient(default_database_name="test_db")
        connection._database = "test_db"
        connection._url = "mongodb://mock:27017"

        # Make connect() return the client and mark as "connected"
        async def _mock_connect():
            return connection._client

        connection.connect = _mock_connect

        yield connection

    except ImportError:
        pytest.skip("mongomock-motor not installed")


@pytest.fixture
async def mock_database(mongo_connection):
    """MongoDatabase facade over mongomock (plain CRUD only, no $lookup)."""
    return MongoDatabase(mongo_connection)


@pytest.fixture(scope="module")
def mongo_container():
    """Create a MongoDB container using testcontainers."""
    pytest.importorskip("testcontainers")

    from testcontainers.mongodb import MongoDbContainer

    try:
        container = MongoDbContainer("mongo:7.0")
        container.start()
    except Exception as e:  # noqa: BLE001
        pytest.skip(f"MongoDB container unavailable: {e}")
    yield container
    container.stop()


# Collections dropped before each integration test
_REAL_MONGO_TEST_COLLECTIONS = [
    "orders",
    "customers",
    "clients",
    "policies",
    "agents",
    "agents_policies",
    "addresses",
]


@pytest.fixture
async def real_database(mongo_container):
    """
    MongoDatabase over a real MongoDB instance from testcontainers.

    Integration tests need the real aggregation engine for ``$lookup``.
    Function scope avoids "Event loop is closed" when tests run in different
    loops. Drops test collections before each test for isolation.
    """
    connection = MongoConnectionManager(
        mongo_container.get_connection_url(), database="test_db"
    )
    await connection.connect()

    for name in _REAL_MONGO_TEST_COLLECTIONS:
        await connection.database[name].drop()

    yield MongoDatabase(connection)

    connection.close()
