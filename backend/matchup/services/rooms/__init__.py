"""Room domain services: registry, round state machine, classification and timers.

Everything here is transport-agnostic. Socket handlers and HTTP routes call
into `RoomService` and deliver the notifications it returns.
"""

from .classifier import Verdict, classify
from .registry import SessionRegistry
from .service import RoomService

__all__ = ['RoomService', 'SessionRegistry', 'Verdict', 'classify']
