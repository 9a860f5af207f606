from .history import CascadeHistory
from .models import CascadeOutcomeRecord, CascadeRun

__all__ = [
    "CascadeRun",
    "CascadeOutcomeRecord",
    "CascadeHistory",
]
