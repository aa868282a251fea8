from .Base import Base
from .conversations import Conversation
from .messages import ChatMessage
from .handoff_requests import HandoffRequest

__all__ = ['Base', 'Conversation', 'ChatMessage', 'HandoffRequest']
