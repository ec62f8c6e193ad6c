"""Database models module."""

from models.aggregate import AppliedVote, Dimension, VoteAggregate
from models.app_setting import AppSetting
from models.subject import SemanticKey, Subject, SubjectKind, SubjectOption
from models.vote import Vote

__all__ = [
    "AppSetting",
    "AppliedVote",
    "Dimension",
    "SemanticKey",
    "Subject",
    "SubjectKind",
    "SubjectOption",
    "Vote",
    "VoteAggregate",
]
