"""Control token protocol parsing.

Pure functions over already-captured agent output. Nothing here performs I/O.
"""

from typing import Optional

from blueprints.constants import PLAN_END_MARKER, PLAN_START_MARKER
from blueprints.models.control import ControlKind, ControlSignal, Tokens


def extract_continue_payload(output: str, tokens: Tokens) -> Optional[str]:
    """Return the text following the first CONTINUE line, or None if there is none.

    Lines after the marker keep their content (only a trailing carriage return is
    dropped); the joined payload is trimmed.
    """
    found = False
    payload = []

    for raw in output.split("\n"):
        line = raw.rstrip("\r")
        if not found:
            if line.strip() == tokens.continue_token:
                found = True
            continue
        payload.append(line)

    if not found:
        return None
    return "\n".join(payload).strip()


def classify_output(output: str, tokens: Tokens) -> ControlSignal:
    """Classify captured output as FAILED, DONE, CONTINUE(payload) or UNRECOGNIZED.

    Whole-output ERROR wins over everything, then whole-output COMPLETED, then
    the CONTINUE line scan.
    """
    trimmed = output.strip()
    if trimmed == tokens.error:
        return ControlSignal(ControlKind.FAILED)
    if trimmed == tokens.completed:
        return ControlSignal(ControlKind.DONE)

    payload = extract_continue_payload(output, tokens)
    if payload is None:
        return ControlSignal(ControlKind.UNRECOGNIZED)
    return ControlSignal(ControlKind.CONTINUE, payload)


def extract_plan(output: str) -> Optional[str]:
    """Return the lines between the plan start/end markers.

    Returns None when no complete plan block is present.
    """
    in_plan = False
    lines = []

    for raw in output.split("\n"):
        line = raw.rstrip("\r")
        if line == PLAN_START_MARKER:
            in_plan = True
            continue
        if line == PLAN_END_MARKER:
            if in_plan:
                return "\n".join(lines)
            break
        if in_plan:
            lines.append(line)

    return None
