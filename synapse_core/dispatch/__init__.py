"""Action execution: dispatcher, course-creation pipeline and tutorial playback."""

from .dispatcher import ActionDispatcher
from .errors import CreationInProgressError, DirectiveError, ReservationError
from .orchestrator import (
    CourseCreationOrchestrator,
    CourseCreationResult,
    CourseFile,
    CourseServices,
    CreationRequest,
)
from .outcomes import ActionOutcome, DispatchReport
from .state import CreationFlowGuard, FlowState
from .tutorial import FEATURE_SCRIPT, WELCOME_SCRIPT, ScriptStep, TutorialPlayer

__all__ = [
    "ActionDispatcher",
    "ActionOutcome",
    "CourseCreationOrchestrator",
    "CourseCreationResult",
    "CourseFile",
    "CourseServices",
    "CreationFlowGuard",
    "CreationInProgressError",
    "CreationRequest",
    "DirectiveError",
    "DispatchReport",
    "FEATURE_SCRIPT",
    "FlowState",
    "ReservationError",
    "ScriptStep",
    "TutorialPlayer",
    "WELCOME_SCRIPT",
]
