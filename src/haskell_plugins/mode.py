"""Per-invocation decision on whether plugins may be injected.

This is the only place the decision is made. The manifest overlay and the
environment encoder both require an eligible :class:`Eligibility` and do
nothing otherwise, so plugins never reach release packaging or builds of a
package performed on behalf of another package.
"""

import logging
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class CommandKind(Enum):
    """Build-tool commands, split into development and packaging kinds."""

    BUILD = "build"
    TEST = "test"
    BENCH = "bench"
    EXEC = "exec"
    RUN = "run"
    REPL = "repl"
    INSTALL = "install"
    SDIST = "sdist"
    UPLOAD = "upload"
    HADDOCK = "haddock"
    DIST = "dist"

    @property
    def is_development(self) -> bool:
        return self in _DEVELOPMENT_COMMANDS


_DEVELOPMENT_COMMANDS = frozenset(
    {
        CommandKind.BUILD,
        CommandKind.TEST,
        CommandKind.BENCH,
        CommandKind.EXEC,
        CommandKind.RUN,
        CommandKind.REPL,
    }
)


@dataclass(frozen=True)
class InvocationContext:
    """What the build tool was asked to do, as reported by its CLI layer."""

    command: CommandKind
    is_top_level: bool = True  # False when built as a dependency of another package
    plugins_disabled: bool = False  # explicit opt-out, e.g. --no-plugins


@dataclass(frozen=True)
class Eligibility:
    """Outcome of classification."""

    eligible: bool
    reason: str

    def __bool__(self) -> bool:
        return self.eligible


def classify(context: InvocationContext) -> Eligibility:
    """Decide whether plugin injection is permitted for this invocation.

    Args:
        context: The current invocation

    Returns:
        Eligibility with a human-readable reason
    """
    if context.plugins_disabled:
        decision = Eligibility(False, "plugins disabled for this invocation")
    elif not context.command.is_development:
        decision = Eligibility(
            False, f"'{context.command.value}' is a packaging command; plugins are never injected"
        )
    elif not context.is_top_level:
        decision = Eligibility(False, "package is being built as a dependency of another package")
    else:
        decision = Eligibility(True, f"'{context.command.value}' on the top-level package")

    logger.debug("Plugin injection %s: %s", "enabled" if decision else "disabled", decision.reason)
    return decision
