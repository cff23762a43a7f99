import sys
import traceback
from typing import Any, Iterable, List, Optional
from psycopg_pool import AsyncConnectionPool
from psycopg.rows import dict_row
from psycopg import OperationalError, DatabaseError

from .config import settings

pool: Optional[AsyncConnectionPool] = None


def _connection_kwargs():
    """Build connection kwargs for psycopg"""
    kwargs = {}

    if settings.postgres_ssl is False:
        kwargs["sslmode"] = "disable"
    else:
        kwargs["sslmode"] = "require"

    kwargs["connect_timeout"] = 10
    kwargs["application_name"] = "cotacoes_frete_backend"

    return kwargs


def _mask_conninfo(conninfo: str) -> str:
    try:
        credentials, host = conninfo.split("@", 1)
        return credentials.rsplit(":", 1)[0] + ":****@" + host
    except (ValueError, IndexError):
        return "postgresql://****"


async def get_pool() -> AsyncConnectionPool:
    """
    Get or create the database connection pool.
    The hosted store is reached over TLS unless POSTGRES_SSL is false.
    """
    global pool

    if pool is not None:
        return pool

    conninfo = settings.build_db_url()

    if not conninfo:
        raise RuntimeError(
            "Database configuration is missing. "
            "Set DATABASE_URL or POSTGRES_* environment variables."
        )

    print("Initializing database pool...")
    print(f"Connection: {_mask_conninfo(conninfo)}")
    print(f"SSL Mode: {'disabled' if settings.postgres_ssl is False else 'required'}")

    candidate = AsyncConnectionPool(
        conninfo=conninfo,
        open=False,
        kwargs=_connection_kwargs(),
        min_size=1,
        max_size=10,
        timeout=30,
        max_idle=300,
        max_lifetime=3600,
    )

    try:
        await candidate.open(wait=True, timeout=30)

        async with candidate.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT version()")
                version = await cur.fetchone()
                print(f"✓ Connected to: {version[0][:80]}...")

        pool = candidate
        print("✓ Database pool initialized successfully")
        return pool

    except OperationalError as e:
        error_msg = str(e)
        print("=" * 60)
        print("DATABASE CONNECTION ERROR (OperationalError):")
        print(f"  {error_msg}")
        print("=" * 60)

        if "timeout" in error_msg.lower():
            print("\n🔍 DIAGNOSIS: Connection timeout")
            print("   The database host did not answer; check host, port and firewall rules")
        elif "password" in error_msg.lower() or "authentication" in error_msg.lower():
            print("\n🔍 DIAGNOSIS: Authentication failed")
            print("   Check POSTGRES_USER / POSTGRES_PASSWORD or DATABASE_URL")
        elif "database" in error_msg.lower() and "does not exist" in error_msg.lower():
            print("\n🔍 DIAGNOSIS: Database not found")
            print(f"   The database '{settings.postgres_db}' does not exist")

        print("\nCurrent configuration:")
        print(f"  POSTGRES_HOST: {settings.postgres_host}")
        print(f"  POSTGRES_PORT: {settings.postgres_port}")
        print(f"  POSTGRES_DB: {settings.postgres_db}")
        print(f"  POSTGRES_USER: {settings.postgres_user}")
        print(f"  POSTGRES_PASSWORD: {'set' if settings.postgres_password else 'NOT SET'}")
        print(f"  DATABASE_URL: {'set' if settings.database_url else 'NOT SET'}")
        print("=" * 60)

        traceback.print_exc(file=sys.stdout)
        await candidate.close()
        raise

    except DatabaseError as e:
        print("=" * 60)
        print("DATABASE ERROR:")
        print(f"  {str(e)}")
        print("=" * 60)
        traceback.print_exc(file=sys.stdout)
        await candidate.close()
        raise


async def close_pool():
    """Close the database connection pool"""
    global pool

    if pool:
        print("Closing database pool...")
        await pool.close()
        pool = None
        print("✓ Database pool closed")


async def ping() -> bool:
    """Cheap liveness query used by the health endpoint."""
    row = await fetchrow("SELECT 1 AS ok")
    return bool(row and row.get("ok") == 1)


async def fetch(query: str, params: Iterable[Any] | None = None) -> List[dict]:
    """Execute a SELECT query and return all rows as dictionaries"""
    pool_instance = await get_pool()
    async with pool_instance.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params or [])
            rows = await cur.fetchall()
            return [dict(r) for r in rows]


async def fetchrow(query: str, params: Iterable[Any] | None = None) -> Optional[dict]:
    """Execute a query and return a single row as a dictionary"""
    pool_instance = await get_pool()
    async with pool_instance.connection() as conn:
        async with conn.cursor(row_factory=dict_row) as cur:
            await cur.execute(query, params or [])
            row = await cur.fetchone()
            return dict(row) if row else None


async def execute(query: str, params: Iterable[Any] | None = None) -> int:
    """Execute an INSERT/UPDATE/DELETE query and return affected row count"""
    pool_instance = await get_pool()
    async with pool_instance.connection() as conn:
        async with conn.cursor() as cur:
            await cur.execute(query, params or [])
            await conn.commit()
            return cur.rowcount
