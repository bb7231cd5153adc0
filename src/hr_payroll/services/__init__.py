"""Services for probation, funding allocation and payroll operations."""

from hr_payroll.services.allocation_service import (
    AllocationSplit,
    FundingAllocationLedger,
    create_allocations_with_retry,
)
from hr_payroll.services.payroll_service import (
    BulkPayrollRunner,
    PayrollGenerationResult,
    PayrollRunOutcome,
    PayrollRunSummary,
    PayrollService,
)
from hr_payroll.services.probation_service import ProbationHistory, ProbationTracker
from hr_payroll.services.probation_state import (
    InvalidProbationTransitionError,
    ProbationStateMachine,
)
from hr_payroll.services.tax_rules import TaxRulesStore
from hr_payroll.services.transition_service import (
    ProbationCommands,
    TransitionOutcome,
    TransitionProcessor,
    TransitionSummary,
    load_employment_for_update,
)

__all__ = [
    "AllocationSplit",
    "BulkPayrollRunner",
    "FundingAllocationLedger",
    "InvalidProbationTransitionError",
    "PayrollGenerationResult",
    "PayrollRunOutcome",
    "PayrollRunSummary",
    "PayrollService",
    "ProbationCommands",
    "ProbationHistory",
    "ProbationStateMachine",
    "ProbationTracker",
    "TaxRulesStore",
    "TransitionOutcome",
    "TransitionProcessor",
    "TransitionSummary",
    "create_allocations_with_retry",
    "load_employment_for_update",
]
