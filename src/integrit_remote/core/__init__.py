"""Site lifecycle orchestration."""

from .commands import Mode, OperationOutcome, SiteCommand
from .lifecycle import LifecycleController, Notifier

__all__ = ["LifecycleController", "Mode", "Notifier", "OperationOutcome", "SiteCommand"]
