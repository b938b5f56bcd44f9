"""
Fatal/tolerated classification for collaborator calls.

Every call against the API goes through attempt() exactly once and its
Outcome is handed to resolve(), which is the only place a failure is turned
into an aborted run.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .client import ProxmoxError

logger = logging.getLogger(__name__)


class Severity(enum.Enum):
    FATAL = 'fatal'
    TOLERATED = 'tolerated'


class FatalError(Exception):
    """Aborts the run; main() reports it once and exits non-zero."""

    def __init__(self, message, exit_code=1):
        super().__init__(message)
        self.exit_code = exit_code


@dataclass
class Outcome:
    context: str
    severity: Severity
    value: Any = None
    error: Optional[ProxmoxError] = None

    @property
    def ok(self):
        return self.error is None


def attempt(context, severity, func, *args):
    """
    Run one collaborator call and capture its failure.

    :param context: Human description of the call site (e.g., 'Failed to list nodes')
    :param severity: Severity applied if the call fails
    :param func: Callable to invoke
    :return: Outcome
    """
    try:
        return Outcome(context, severity, value=func(*args))
    except ProxmoxError as e:
        return Outcome(context, severity, error=e)


def resolve(outcome):
    """
    Apply the error policy to an Outcome.

    :param outcome: Outcome from attempt()
    :return: The call's value, or None for a tolerated failure
    :raises FatalError: for a failed FATAL outcome
    """
    if outcome.ok:
        return outcome.value
    if outcome.severity is Severity.FATAL:
        raise FatalError(f"{outcome.context}: {outcome.error}")
    logger.debug(f"{outcome.context}: {outcome.error} (tolerated)")
    return None


def call(context, severity, func, *args):
    return resolve(attempt(context, severity, func, *args))


def fatal(context, func, *args):
    return call(context, Severity.FATAL, func, *args)
