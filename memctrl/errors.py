"""
Protocol invariant checking.

The controller has no recoverable-error concept. Queue exhaustion is
backpressure (a deasserted ready), never an exception. What remains are
protocol invariant violations, which are checked in debug builds
(``config.check_protocol``) and left unchecked otherwise.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import MemCtrlConfig


class ProtocolViolation(AssertionError):
    """A caller or component broke a cycle-level protocol invariant."""


def protocol_check(config: "MemCtrlConfig", condition: bool, message: str) -> None:
    """
    Raise ProtocolViolation if checking is enabled and condition is False.

    Args:
        config: Controller configuration (``check_protocol`` gates the check).
        condition: Invariant that must hold.
        message: Description of the violated invariant.
    """
    if config.check_protocol and not condition:
        raise ProtocolViolation(message)
