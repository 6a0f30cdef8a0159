"""
Send - Placeholder for dynamic fan-out.

A router may one day return several Send instructions to run the same or
different nodes concurrently, each on its own payload, with the results
folded back together through State.merge. The executor does not implement
this yet: routing to a Send raises FanOutNotSupportedError. The type is
exported so user code can start referring to it.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Send:
    """Dispatch ``state`` to ``node`` (future fan-out primitive)."""

    node: str
    state: Any
