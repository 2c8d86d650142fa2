"""
Governance module - meetings, minutes, motions, annotations and review flags.
"""

from boardbook.governance.models import (
    Annotation,
    AnnotationTargetType,
    FlagTargetType,
    Meeting,
    MeetingType,
    Minutes,
    MinutesStatus,
    Motion,
    MotionResult,
    ReviewFlag,
    ReviewFlagStatus,
    ReviewFlagType,
)

__all__ = [
    # Enums
    "AnnotationTargetType",
    "FlagTargetType",
    "MeetingType",
    "MinutesStatus",
    "MotionResult",
    "ReviewFlagStatus",
    "ReviewFlagType",
    # Models
    "Annotation",
    "Meeting",
    "Minutes",
    "Motion",
    "ReviewFlag",
]
