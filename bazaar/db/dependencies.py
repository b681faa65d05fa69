from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import  AsyncSession
from bazaar.db.connection import async_session

async def get_session() -> AsyncGenerator[AsyncSession,None]:
    # the session opens a connection on first execute and closes it when the block exits
    async with async_session() as session:
        yield session


async def get_session_factory():
    yield async_session
