"""
Settings Store

String-keyed settings whose values are JSON-encoded scalars. All helpers
take the caller's session so reads and writes join the caller's
transaction.
"""

import json
import logging
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Setting

logger = logging.getLogger(__name__)

STORE_NUMBER = "store_number"
STORE_NAME_ZH = "store_name_zh"
STORE_NAME_EN = "store_name_en"
DAILY_DINE_IN_SEQUENCE = "daily_dine_in_sequence"
DAILY_TAKEOUT_SEQUENCE = "daily_takeout_sequence"
DAILY_SEQUENCE_DATE = "daily_sequence_date"

# key -> (default value, category)
DEFAULT_SETTINGS: dict[str, tuple[Any, str]] = {
    STORE_NUMBER: ("", "store"),
    STORE_NAME_ZH: ("", "store"),
    STORE_NAME_EN: ("", "store"),
    DAILY_SEQUENCE_DATE: ("", "sequence"),
    DAILY_DINE_IN_SEQUENCE: (0, "sequence"),
    DAILY_TAKEOUT_SEQUENCE: (0, "sequence"),
}


def decode_value(raw: Optional[str]) -> Any:
    """Decode a stored value, falling back to the raw string."""
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


def encode_value(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


async def get_setting(session: AsyncSession, key: str, default: Any = None) -> Any:
    """Return one decoded setting, or `default` when the key is absent."""
    row = await session.get(Setting, key)
    if row is None:
        return default
    return decode_value(row.value)


async def get_settings_map(
    session: AsyncSession,
    keys: Optional[Iterable[str]] = None,
) -> dict[str, Any]:
    """Return decoded settings, all of them or only `keys`."""
    query = select(Setting)
    if keys is not None:
        query = query.where(Setting.key.in_(list(keys)))
    result = await session.execute(query)
    return {row.key: decode_value(row.value) for row in result.scalars()}


async def lock_settings(session: AsyncSession, keys: Iterable[str]) -> dict[str, Setting]:
    """
    Load setting rows with a row lock for a read-modify-write.

    Uses SELECT ... FOR UPDATE; on SQLite the clause is ignored and the
    transaction-level write lock (BEGIN IMMEDIATE) serializes writers.
    """
    result = await session.execute(
        select(Setting).where(Setting.key.in_(list(keys))).with_for_update()
    )
    return {row.key: row for row in result.scalars()}


async def set_setting(
    session: AsyncSession,
    key: str,
    value: Any,
    *,
    category: Optional[str] = None,
    existing: Optional[Setting] = None,
) -> Setting:
    """Create or update one setting inside the caller's transaction."""
    row = existing if existing is not None else await session.get(Setting, key)
    if row is None:
        row = Setting(
            key=key,
            value=encode_value(value),
            category=category or DEFAULT_SETTINGS.get(key, (None, "general"))[1],
        )
        session.add(row)
    else:
        row.value = encode_value(value)
    return row


async def seed_default_settings(session: AsyncSession) -> int:
    """Create missing default keys; existing values are left alone."""
    existing = await get_settings_map(session, DEFAULT_SETTINGS.keys())
    created = 0
    for key, (value, category) in DEFAULT_SETTINGS.items():
        if key not in existing:
            session.add(Setting(key=key, value=encode_value(value), category=category))
            created += 1
    if created:
        await session.flush()
        logger.debug(f"Seeded {created} default settings")
    return created
