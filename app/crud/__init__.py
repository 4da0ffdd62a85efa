from app.crud.snapshot import (
    delete_snapshot,
    get_snapshot,
    upsert_snapshot,
)

__all__ = [
    "get_snapshot",
    "upsert_snapshot",
    "delete_snapshot",
]
