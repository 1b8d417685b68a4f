# models/registry.py
"""Imports every record type so Base.metadata knows all tables."""
from .base import Base
from .user import User
from .profile import UserProfile, DiscoverableProfile
from .photo import ProfilePhoto
from .chat import ChatSession, ChatMessage, ChatDecision
from .block import BlockedUser
from .report import Report
from .rsvp import EventRSVP
from .decision_intent import DecisionIntent

__all__ = [
    "Base",
    "User",
    "UserProfile",
    "DiscoverableProfile",
    "ProfilePhoto",
    "ChatSession",
    "ChatMessage",
    "ChatDecision",
    "BlockedUser",
    "Report",
    "EventRSVP",
    "DecisionIntent",
]
