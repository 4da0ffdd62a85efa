from app.models.base import Base, get_db
from app.models.snapshot import SessionSnapshot

__all__ = ["Base", "SessionSnapshot", "get_db"]
