import logging
import sqlite3
from pathlib import Path
from typing import Optional, Tuple

from ..config import UniquePolicy
from .schema import MAIN_SCHEMA, UNIQUE_INDEX_NAME, UNIQUE_INDEX_TEMPLATE

logger = logging.getLogger(__name__)


def _existing_unique_columns(conn: sqlite3.Connection) -> Optional[Tuple[str, ...]]:
    rows = conn.execute(f"PRAGMA index_info({UNIQUE_INDEX_NAME})").fetchall()
    if not rows:
        return None
    # (seqno, cid, name)
    return tuple(r[2] for r in sorted(rows))


def init_db_if_needed(db_path: Path, unique_policy: UniquePolicy = UniquePolicy.TUPLE) -> UniquePolicy:
    """Create the schema if missing and return the uniqueness policy actually in force."""
    db_path = Path(db_path)
    conn = sqlite3.connect(str(db_path))
    try:
        conn.executescript(MAIN_SCHEMA)
        existing = _existing_unique_columns(conn)
        if existing is None:
            conn.execute(UNIQUE_INDEX_TEMPLATE.format(columns=", ".join(unique_policy.columns)))
            conn.commit()
            logger.debug("Created unique index on %s", unique_policy.columns)
            return unique_policy

        for policy in UniquePolicy:
            if policy.columns == existing:
                if policy is not unique_policy:
                    logger.warning(
                        "Store %s was created with uniqueness policy %r; ignoring requested %r",
                        db_path, policy.value, unique_policy.value,
                    )
                return policy
        raise sqlite3.DatabaseError(f"unexpected unique index columns in {db_path}: {existing}")
    finally:
        conn.close()
