import asyncio

from core.database import AsyncSessionLocal
from models.chat import ChatDecision
from services.connections import list_connections


async def _decisions(*rows):
    async with AsyncSessionLocal() as db:
        for session_id, user_id, did_connect in rows:
            db.add(ChatDecision(session_id=session_id, user_id=user_id, did_connect=did_connect))
        await db.commit()


def test_only_mutual_sessions_count_sorted_by_name(make_user):
    me = asyncio.run(make_user("Alex"))
    zoe = asyncio.run(make_user("Zoe"))
    ben = asyncio.run(make_user("ben"))
    carl = asyncio.run(make_user("Carl"))
    dan = asyncio.run(make_user("Dan"))

    asyncio.run(_decisions(
        (105, me, 1), (105, zoe, 1),
        (205, me, 1), (205, ben, 1),
        (305, me, 1), (305, carl, 0),
        (405, me, 0), (405, dan, 1),
    ))

    result = asyncio.run(list_connections(me))
    assert [c.name for c in result.connections] == ["ben", "Zoe"]
    assert result.error is None


def test_partner_without_profile_is_skipped(make_user):
    me = asyncio.run(make_user("Alex"))
    asyncio.run(_decisions((105, me, 1), (105, 99999901, 1)))

    result = asyncio.run(list_connections(me))
    assert result.connections == []
    assert result.error is None


def test_no_decisions_no_connections(make_user):
    me = asyncio.run(make_user("Alex"))
    assert asyncio.run(list_connections(me)).connections == []
