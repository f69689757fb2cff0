# ABOUTME: Minimal chat records so goals can be tied to a conversation and its owner.
# ABOUTME: Messages and chat history live in the chat service; only ownership is tracked here.

from uuid import UUID

from core.database import Chat, Database
from core.errors import operation


@operation("Failed to create chat")
async def create_chat(db: Database, user_id: UUID, title: str = "New chat") -> Chat:
    chat = Chat(user_id=user_id, title=title.strip() or "New chat")
    async with db.transaction() as session:
        session.add(chat)
    return chat


@operation("Failed to get chat by id")
async def get_chat(db: Database, chat_id: UUID) -> Chat | None:
    async with db.session() as session:
        return await session.get(Chat, chat_id)
