import random

# Two-digit entity postfixes
TYPE_POSTFIX = {
    "users": 1,
    "user_profiles": 2,
    "profile_photos": 3,
    "discoverable_profiles": 4,
    "chat_sessions": 5,
    "chat_messages": 6,
    "chat_decisions": 7,
    "blocked_users": 8,
    "reports": 9,
    "event_rsvps": 10,
    "decision_intents": 11,
}


def generate_random_id(entity: str) -> int:
    """Return an 8-digit id: 6 random digits + 2-digit entity postfix."""
    if entity not in TYPE_POSTFIX:
        raise ValueError(f"Unknown entity for ID generation: {entity}")
    rand6 = random.randint(0, 999_999)
    postfix = TYPE_POSTFIX[entity]
    return rand6 * 100 + postfix
