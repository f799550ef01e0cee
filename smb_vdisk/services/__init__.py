"""
SMB Virtual Disk Services

Mount orchestration and the presentation adapters that consume its outcomes.
"""

from .mount import MountOrchestrator  # noqa: F401
from .presenter import MountController, OutcomeChannel, TabPresenter  # noqa: F401

__all__ = [
    "MountOrchestrator",
    "MountController",
    "OutcomeChannel",
    "TabPresenter",
]
