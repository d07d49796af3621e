"""
Entry-mutation notifications sent by the entries CRUD layer.

POST /hooks/entries → EntryEventRequest → EntryEventAccepted (202)
"""
from typing import Literal, Optional
from pydantic import BaseModel, Field


class EntryEventRequest(BaseModel):
    user_id: int = Field(ge=1, description="Owner of the created / deleted entry.")
    event: Literal["created", "deleted"]
    entry_id: Optional[int] = Field(default=None, description="For logging only.")


class EntryEventAccepted(BaseModel):
    accepted: bool = True
    user_id: int
    event: str
