from .filter import (
    Admission,
    AdmissionPolicy,
    PatternList,
    check_origin,
    check_target,
)

__all__ = [
    "Admission",
    "AdmissionPolicy",
    "PatternList",
    "check_origin",
    "check_target",
]
