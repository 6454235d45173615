from .dispatcher import NotificationDispatcher
from .renderer import PayloadRenderer
from .router import EventRouter
from .schemas import DispatchInstruction, DispatchResult, DispatchTally, DomainEvent, EventKind
from .tokens import TokenDirectory

__all__ = [
    'DispatchInstruction',
    'DispatchResult',
    'DispatchTally',
    'DomainEvent',
    'EventKind',
    'EventRouter',
    'NotificationDispatcher',
    'PayloadRenderer',
    'TokenDirectory',
]
