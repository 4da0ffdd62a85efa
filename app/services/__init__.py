from app.services.autosave import AutoSaveScheduler
from app.services.exam_loader import InMemoryExamLoader, RemoteExamLoader
from app.services.exam_session_service import (
    ExamSessionService,
    SessionRegistry,
    get_exam_session_service,
)
from app.services.ledger import AnswerLedger
from app.services.persistence import (
    MemorySnapshotStore,
    PersistenceAdapter,
    SqlSnapshotStore,
)
from app.services.remote_client import RemoteSessionClient
from app.services.scoring import evaluate_answer, score_exam
from app.services.session_controller import SessionController, SessionState
from app.services.timer import CountdownTimer

__all__ = [
    "CountdownTimer",
    "AnswerLedger",
    "evaluate_answer",
    "score_exam",
    "AutoSaveScheduler",
    "MemorySnapshotStore",
    "SqlSnapshotStore",
    "PersistenceAdapter",
    "RemoteSessionClient",
    "InMemoryExamLoader",
    "RemoteExamLoader",
    "SessionController",
    "SessionState",
    "SessionRegistry",
    "ExamSessionService",
    "get_exam_session_service",
]
