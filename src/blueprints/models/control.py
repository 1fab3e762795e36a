"""Control token models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from blueprints.constants import COMPLETED_TOKEN, CONTINUE_TOKEN, ERROR_TOKEN


class ControlKind(str, Enum):
    """Classification of an agent's captured output."""

    FAILED = "failed"
    DONE = "done"
    CONTINUE = "continue"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class ControlSignal:
    """Result of classifying captured output against the control tokens."""

    kind: ControlKind
    payload: Optional[str] = None


@dataclass(frozen=True)
class Tokens:
    """The three sentinel strings agents use to steer the loop."""

    completed: str = COMPLETED_TOKEN
    continue_token: str = CONTINUE_TOKEN
    error: str = ERROR_TOKEN

    def apply(self, template: str) -> str:
        """Fill the token placeholders of a prompt template."""
        return (
            template.replace("${COMPLETED_TOKEN}", self.completed)
            .replace("${CONTINUE_TOKEN}", self.continue_token)
            .replace("${ERROR_TOKEN}", self.error)
        )
