"""
API Services Layer.

The assessment core: answer key access, marking, progress tracking and
session finalization, plus the admin operations built on the same stores.
"""

from api.services.marking import (
    MarkingSummary,
    Question,
    coerce_answers,
    normalize_answers,
    score,
)

from api.services.answer_key import (
    AnswerKeyStore,
    load_question_file,
    parse_question_records,
)

from api.services.progress import (
    ProgressSnapshot,
    ProgressTracker,
)

from api.services.finalizer import (
    SessionFinalizer,
    SessionState,
    SubmissionSummary,
)

from api.services.admin import AdminService

__all__ = [
    # Marking
    "MarkingSummary",
    "Question",
    "coerce_answers",
    "normalize_answers",
    "score",
    # Answer key
    "AnswerKeyStore",
    "load_question_file",
    "parse_question_records",
    # Progress
    "ProgressSnapshot",
    "ProgressTracker",
    # Finalization
    "SessionFinalizer",
    "SessionState",
    "SubmissionSummary",
    # Admin
    "AdminService",
]
