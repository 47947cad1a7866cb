"""Print the message log stored in the project's SQLite database.

Messages are grouped by thread and printed oldest first. It reuses the same
`DATABASE_DIR` behavior as the application via
`utils.database_init.AsyncDatabaseInitializer`.

Run: set the `DATABASE_DIR` environment variable and run `python print_db.py`.
"""
import asyncio
from typing import List

from dal.message_dal import MessageDAL
from models.assistant_models import Message
from utils.database_init import AsyncDatabaseInitializer


def _format_message(message: Message) -> str:
    """Return one printable line for a stored message.

    Args:
        message: The stored message.

    Returns:
        The message id, role, timestamp and text on one line.
    """
    text = message.text.strip().replace("\n", " ")
    return f"  [{message.created_at}] {message.role:<9} {message.id}: {text!r}"


async def _print_thread(dal: MessageDAL, thread_id: str) -> None:
    messages: List[Message] = await dal.query(thread_id)
    if not messages:
        return
    print(f"Thread: {thread_id} ({len(messages)} messages)")
    for message in messages:
        print(_format_message(message))
    print()


async def main() -> None:
    """Ensure DB exists and print every thread's messages."""
    dal = MessageDAL(AsyncDatabaseInitializer())
    for thread_id in await dal.list_threads():
        await _print_thread(dal, thread_id)


if __name__ == "__main__":
    asyncio.run(main())
