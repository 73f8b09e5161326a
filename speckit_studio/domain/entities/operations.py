"""Workflow operations - the closed set of things a turn can dispatch to."""

from enum import Enum


class Operation(str, Enum):
    """Operation ids as used by chat actions and intent classification."""

    ANSWER_CLARIFICATION = "answer_clarification"
    REGENERATE_SPEC = "regenerate_spec"
    COMPLETE_SPEC = "complete_spec"
    RUN_CHECKLIST = "run_checklist"
    RUN_TECH = "run_tech"
    RUN_AUTOTEST = "run_autotest"
    RUN_TASKS = "run_tasks"
    RUN_IMPLEMENT = "run_implement"
    RUN_ANALYZE = "run_analyze"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, operation_id: str) -> "Operation":
        """Map a raw id to an operation; anything unrecognised is UNKNOWN."""
        try:
            return cls(operation_id.strip())
        except ValueError:
            return cls.UNKNOWN


CHAT = "chat"


def is_command(operation_id: str) -> bool:
    """True when a classified id should bypass clarification and go to a stage handler."""
    op = operation_id.strip()
    return op != CHAT and (
        op.startswith("run_")
        or op == Operation.COMPLETE_SPEC.value
        or op == Operation.REGENERATE_SPEC.value
    )
