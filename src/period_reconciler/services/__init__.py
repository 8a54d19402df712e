"""Period reconciliation services."""

from period_reconciler.services.auto_heal import AutoHealResult, PeriodAutoHealer
from period_reconciler.services.conflict_resolver import (
    ConflictResolutionResult,
    ConflictResolver,
)
from period_reconciler.services.diagnostics import DiagnosticAnalyzer, DiagnosticReport
from period_reconciler.services.lifecycle import PeriodLifecycleService
from period_reconciler.services.period_detection import (
    DetectionAction,
    PeriodCreationResult,
    PeriodDetectionResult,
    PeriodDetectionService,
)
from period_reconciler.services.post_closure import (
    ClosureVerificationConfig,
    PostClosureDetectionService,
    PostClosureResult,
)
from period_reconciler.services.reconciliation import PeriodReconciliationService
from period_reconciler.services.root_resolver import (
    RootConflictResolutionResult,
    RootConflictResolver,
)
from period_reconciler.services.state_machine import InvalidTransitionError, PeriodStateMachine
from period_reconciler.services.store import PeriodStore, SqlPeriodStore

__all__ = [
    "AutoHealResult",
    "ClosureVerificationConfig",
    "ConflictResolutionResult",
    "ConflictResolver",
    "DetectionAction",
    "DiagnosticAnalyzer",
    "DiagnosticReport",
    "InvalidTransitionError",
    "PeriodAutoHealer",
    "PeriodCreationResult",
    "PeriodDetectionResult",
    "PeriodDetectionService",
    "PeriodLifecycleService",
    "PeriodReconciliationService",
    "PeriodStateMachine",
    "PeriodStore",
    "PostClosureDetectionService",
    "PostClosureResult",
    "RootConflictResolutionResult",
    "RootConflictResolver",
    "SqlPeriodStore",
]
