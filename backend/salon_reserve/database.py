from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.echo_sql, "pool_pre_ping": True}
    if make_url(settings.database_url).get_backend_name() == "mysql":
        # Occupancy is re-read with plain SELECTs after the calendar rows are locked;
        # those reads must see bookings committed while the lock was awaited, which
        # InnoDB's default REPEATABLE READ snapshot hides.
        options["isolation_level"] = settings.db_isolation_level
        options["pool_recycle"] = 3600
    return options


settings = get_settings()

engine = create_async_engine(settings.database_url, **engine_options(settings))

# Row locks taken with FOR UPDATE live as long as the session transaction.
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
