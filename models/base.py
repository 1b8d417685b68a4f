from sqlalchemy import event, select
from sqlalchemy.orm import declarative_base

from core.id_generator import generate_random_id

Base = declarative_base()

# Random ids share a 1M space per table
MAX_ID_ATTEMPTS = 5


@event.listens_for(Base, "before_insert", propagate=True)
def assign_random_id(mapper, connection, target):
    if getattr(target, "id", None) is not None:
        return
    table = mapper.local_table
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = generate_random_id(table.name)
        taken = connection.execute(select(table.c.id).where(table.c.id == candidate)).first()
        if taken is None:
            target.id = candidate
            return
    raise RuntimeError(f"Could not allocate a free id for {table.name}")
