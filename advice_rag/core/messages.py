"""
Message records and their SQLite-backed store.

A message is created before the pipeline runs, gets its stage 1 draft and
display entries after stage 1, its final text after stage 2, and afterwards
only changes through user feedback.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from .db import get_db, init_db
from .errors import MessageNotFoundError
from ..util.logging import logger

_COLUMNS = "id, query, stage1_response, final_response, metadata, thumbs_up, feedback, created_at"

_UPDATABLE = {
    "stage1_response": "stage1_response",
    "final_response": "final_response",
    "metadata": "metadata",
}


@dataclass
class Message:
    """A query and the responses generated for it."""
    id: int
    query: str
    stage1_response: Optional[str] = None
    final_response: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    thumbs_up: Optional[bool] = None
    feedback: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "query": self.query,
            "stage1Response": self.stage1_response,
            "finalResponse": self.final_response,
            "metadata": self.metadata,
            "thumbsUp": self.thumbs_up,
            "feedback": self.feedback,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row) -> "Message":
        msg_id, query, stage1, final, metadata, thumbs_up, feedback, created_at = row
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return cls(
            id=msg_id,
            query=query,
            stage1_response=stage1,
            final_response=final,
            metadata=json.loads(metadata) if metadata else None,
            thumbs_up=None if thumbs_up is None else bool(thumbs_up),
            feedback=feedback,
            created_at=created_at,
        )


class MessageStore:
    """Create, read and update messages in SQLite."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path
        init_db(db_path)

    def create_message(self, query: str) -> Message:
        created_at = datetime.now()
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "INSERT INTO messages (query, created_at) VALUES (?, ?)",
                (query, created_at.isoformat())
            )
            conn.commit()
            message_id = cursor.lastrowid

        logger.log_message_event("created", message_id, query=query)
        return Message(id=message_id, query=query, created_at=created_at)

    def get_message(self, message_id: int) -> Optional[Message]:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT {_COLUMNS} FROM messages WHERE id = ?", (message_id,))
            row = cursor.fetchone()
        return Message.from_row(row) if row else None

    def update_message(self, message_id: int, **updates) -> Message:
        """
        Update pipeline-owned fields (stage1_response, final_response, metadata).

        Raises:
            MessageNotFoundError: if no message has this id
            ValueError: for fields the pipeline does not own
        """
        unknown = set(updates) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Cannot update message fields: {sorted(unknown)}")

        if updates:
            assignments = ", ".join(f"{_UPDATABLE[field]} = ?" for field in updates)
            values = [
                json.dumps(value) if field == "metadata" and value is not None else value
                for field, value in updates.items()
            ]
            with get_db(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(f"UPDATE messages SET {assignments} WHERE id = ?", (*values, message_id))
                conn.commit()
                if cursor.rowcount == 0:
                    raise MessageNotFoundError(message_id)

        message = self.get_message(message_id)
        if message is None:
            raise MessageNotFoundError(message_id)

        logger.log_message_event("updated", message_id)
        return message

    def set_feedback(self, message_id: int, thumbs_up: bool, feedback: Optional[str] = None) -> Message:
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE messages SET thumbs_up = ?, feedback = ? WHERE id = ?",
                (thumbs_up, feedback, message_id)
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise MessageNotFoundError(message_id)

        logger.log_message_event("feedback", message_id)
        return self.get_message(message_id)

    def list_messages(self, limit: int = 50) -> List[Message]:
        """Most recent messages first."""
        with get_db(self.db_path) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_COLUMNS} FROM messages ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,)
            )
            rows = cursor.fetchall()
        return [Message.from_row(row) for row in rows]
