"""
Database models for the assessment service.

Importing this package registers every table on ``Base.metadata``.
"""

from database.models.audit import AdminLog
from database.models.progress import UserProgress
from database.models.questions import QuestionRow
from database.models.results import ResultRecord
from database.models.users import User, UserRole

__all__ = [
    "AdminLog",
    "QuestionRow",
    "ResultRecord",
    "User",
    "UserProgress",
    "UserRole",
]
