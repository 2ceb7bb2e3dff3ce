"""PostgreSQL pool for the gamification store"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional, Union
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from gamify import config
from gamify.exceptions import ConfigurationError, ConnectionError

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class Database:
    """Owns the async pool; query modules borrow connections through connection()"""

    def __init__(self, connection_string: Optional[str] = None):
        self.connection_string = connection_string or config.DATABASE_URL
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        if self._pool is not None:
            return
        logger.info(
            f"Opening gamification pool (min={config.DB_POOL_MIN_SIZE}, max={config.DB_POOL_MAX_SIZE})"
        )
        pool = AsyncConnectionPool(
            self.connection_string,
            min_size=config.DB_POOL_MIN_SIZE,
            max_size=config.DB_POOL_MAX_SIZE,
            kwargs={"row_factory": dict_row},
            name="gamify",
            open=False
        )
        await pool.open()
        self._pool = pool

    async def close_pool(self) -> None:
        if self._pool:
            logger.info("Closing gamification pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a dict_row connection from the pool"""
        if not self._pool:
            raise ConnectionError(
                "Database pool not initialized, call init_pool() first",
                operation="connection",
            )

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn

    async def apply_migrations(self, directory: Union[str, Path, None] = None) -> list[str]:
        """
        Run every *.sql file in directory (sorted by name)

        The schema files use IF NOT EXISTS, so rerunning is safe.

        Raises:
            ConfigurationError: directory holds no *.sql files

        Returns:
            Names of the files that were executed
        """
        path = Path(directory) if directory is not None else MIGRATIONS_DIR
        files = sorted(path.glob("*.sql"))
        if not files:
            raise ConfigurationError(
                f"No migration files found in {path}",
                config_key="migrations_dir",
            )

        async with self.connection() as conn:
            for sql_file in files:
                logger.info(f"Applying migration {sql_file.name}")
                await conn.execute(sql_file.read_text())
            await conn.commit()

        return [f.name for f in files]


# Global database instance
db = Database()
