"""Log event types for structured logging."""

from enum import StrEnum


class LogEvent(StrEnum):
    """Log event types for stackhub.

    Used with logger.info/warning/error extra dict:
        logger.info("message", extra={"event": LogEvent.INSTANCE_COMMITTED, ...})
    """

    # Application lifecycle
    APP_STARTED = "app_started"
    APP_STOPPED = "app_stopped"
    PREREQUISITES_CHECKED = "prerequisites_checked"

    # Creation workflow
    CREATE_REQUESTED = "create_requested"
    INSTANCE_ALLOCATED = "instance_allocated"
    SCRIPT_STARTED = "script_started"
    SCRIPT_OUTPUT = "script_output"
    SCRIPT_EXITED = "script_exited"
    SCRIPT_TIMEOUT = "script_timeout"
    VALIDATION_STEP = "validation_step"
    VALIDATION_PASSED = "validation_passed"
    VALIDATION_FAILED = "validation_failed"
    INSTANCE_COMMITTED = "instance_committed"
    INSTANCE_ROLLED_BACK = "instance_rolled_back"
    CREATION_CANCELLED = "creation_cancelled"
    CREATION_RECOVERED = "creation_recovered"

    # Runtime operations
    INSTANCE_STARTED = "instance_started"
    INSTANCE_STOPPED = "instance_stopped"
    INSTANCE_DELETED = "instance_deleted"

    # Status
    STATUS_RECONCILED = "status_reconciled"
    TRANSITION_IGNORED = "transition_ignored"

    # Cleanup events
    CLEANUP_STARTED = "cleanup_started"
    CLEANUP_COMPLETED = "cleanup_completed"
    CLEANUP_FAILED = "cleanup_failed"

    # Persistence
    STORE_SAVED = "store_saved"

    # Error events
    UNHANDLED_EXCEPTION = "unhandled_exception"
    STACKHUB_ERROR = "stackhub_error"
