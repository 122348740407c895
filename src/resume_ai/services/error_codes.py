from dataclasses import dataclass
from typing import Dict, List, Optional

from resume_ai.domain.result import ProcessorError, ProcessorErrorCode


@dataclass(frozen=True)
class RecoveryAction:
    action_id: str
    label: str
    description: str


@dataclass(frozen=True)
class ErrorCatalogEntry:
    code: ProcessorErrorCode
    title: str
    user_message: str
    needs_user_action: bool
    actions: List[RecoveryAction]


ERROR_CATALOG: List[ErrorCatalogEntry] = [
    ErrorCatalogEntry(
        code=ProcessorErrorCode.PROVIDER_UNAVAILABLE,
        title="AI provider not available",
        user_message="The selected AI tool is not installed or cannot be reached.",
        needs_user_action=True,
        actions=[
            RecoveryAction("install_cli", "Install the CLI", "Install the provider's command-line tool and sign in."),
            RecoveryAction("switch_provider", "Switch provider", "Select another installed provider."),
        ],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.TIMEOUT,
        title="AI request timed out",
        user_message="The AI tool did not answer in time.",
        needs_user_action=False,
        actions=[
            RecoveryAction("retry", "Try again", "Run the same request again."),
            RecoveryAction("raise_timeout", "Increase timeout", "Allow the provider more time per request."),
        ],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.EXECUTION_FAILED,
        title="AI tool failed",
        user_message="The AI tool exited with an error.",
        needs_user_action=False,
        actions=[
            RecoveryAction("retry", "Try again", "Run the same request again."),
            RecoveryAction("check_login", "Check sign-in", "Make sure the provider CLI is authenticated."),
        ],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.PARSE_FAILED,
        title="Unreadable AI response",
        user_message="The AI response was not valid JSON.",
        needs_user_action=False,
        actions=[RecoveryAction("retry", "Try again", "Run the same request again.")],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.VALIDATION_FAILED,
        title="AI response did not match the expected format",
        user_message="The AI response was missing required fields.",
        needs_user_action=False,
        actions=[
            RecoveryAction("retry", "Try again", "Run the same request again."),
            RecoveryAction("enable_retry", "Enable validation retry", "Let the app re-ask automatically."),
        ],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.CANCELLED,
        title="Request cancelled",
        user_message="The request was cancelled.",
        needs_user_action=False,
        actions=[],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.INVALID_INPUT,
        title="Invalid request",
        user_message="The request options were rejected before anything was sent to the AI tool.",
        needs_user_action=True,
        actions=[RecoveryAction("fix_input", "Fix the request", "Correct the rejected option and try again.")],
    ),
    ErrorCatalogEntry(
        code=ProcessorErrorCode.UNKNOWN,
        title="Unexpected error",
        user_message="Something went wrong while processing the request.",
        needs_user_action=False,
        actions=[RecoveryAction("retry", "Try again", "Run the same request again.")],
    ),
]

_BY_CODE: Dict[ProcessorErrorCode, ErrorCatalogEntry] = {entry.code: entry for entry in ERROR_CATALOG}


def get_catalog_entry(code: ProcessorErrorCode) -> Optional[ErrorCatalogEntry]:
    return _BY_CODE.get(code)


def describe_error(error: ProcessorError) -> Dict[str, object]:
    """User-facing summary of ``error`` for CLI and UI output."""
    entry = get_catalog_entry(error.code)
    return {
        "code": error.code.value,
        "title": entry.title if entry else error.code.value,
        "user_message": entry.user_message if entry else error.message,
        "message": error.message,
        "needs_user_action": entry.needs_user_action if entry else False,
        "actions": [a.action_id for a in entry.actions] if entry else [],
        "details": error.details,
    }
