"""Assessment error taxonomy.

Every error carries a candidate-facing ``message``. Forced terminations must
explain their cause, so routers surface ``message`` verbatim.
"""
from typing import Optional


class AssessmentError(Exception):
    """Base class for all assessment errors."""

    default_message = "The assessment could not continue."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class PermissionDenied(AssessmentError):
    """Camera or microphone access was refused. Blocks section start only."""

    default_message = (
        "Camera and microphone access are required for this section. "
        "Please allow access in your browser and try again."
    )

    def __init__(self, message: Optional[str] = None, device: str = "media"):
        self.device = device
        super().__init__(message)


class SessionInvalid(AssessmentError):
    """The assessment session is unknown or has been invalidated."""

    default_message = "Your assessment session is no longer valid. Please register again."


class SessionExpired(SessionInvalid):
    """The assessment session outlived its time-to-live."""

    default_message = "Your assessment session has expired. Please register again."


class SecurityViolation(AssessmentError):
    """A proctoring violation ended the assessment."""

    default_message = (
        "Your assessment has been submitted because a security violation was "
        "detected. You cannot retake this assessment."
    )


class ScoringOracleFailure(AssessmentError):
    """The scoring service could not score an answer."""

    default_message = "Your answer could not be scored right now."


class PersistenceFailure(AssessmentError):
    """Results could not be saved. The candidate may still proceed."""

    default_message = "Your results could not be saved. You may continue; we will retry later."


class SectionAlreadyCompleted(AssessmentError):
    """A finished section was asked to start again."""

    default_message = "You have already completed this section. Please continue to the next section."


class SectionNotAvailable(AssessmentError):
    """A section was requested out of order or outside its stage."""

    default_message = "This section is not available yet."


class InvalidTransition(AssessmentError):
    """The state machine does not allow the requested transition."""

    default_message = "That action is not allowed at this point of the assessment."


class FullscreenRequired(AssessmentError):
    """A timed section cannot start outside fullscreen mode."""

    default_message = (
        "You must allow fullscreen mode to take this assessment. "
        "This is a strict security requirement."
    )
