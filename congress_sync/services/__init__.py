"""Services package for sync orchestration, change detection and error handling"""

from .change_detection import ChangeDetectionService, ChangeNotifier, detect_changes
from .container import SyncServices, build_services
from .error_handler import ClassifiedError, ErrorHandler, ErrorSeverity, ErrorType
from .orchestrator import SyncOrchestrator
from .queue_ledger import QueueLedger

__all__ = [
    "ChangeDetectionService",
    "ChangeNotifier",
    "detect_changes",
    "SyncServices",
    "build_services",
    "ClassifiedError",
    "ErrorHandler",
    "ErrorSeverity",
    "ErrorType",
    "SyncOrchestrator",
    "QueueLedger",
]
