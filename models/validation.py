"""
Pydantic models for renderer API input validation
"""

from pydantic import BaseModel, validator, Field
from typing import List, Optional

from events.event_bus import EventTypes

class RendererSubscription(BaseModel):
    subscribe: Optional[List[str]] = Field(None, description="Notification types to receive, all when omitted")
    snapshot: bool = Field(False, description="Send a full snapshot right after subscribing")

    @validator('subscribe')
    def validate_types(cls, v):
        if v is None:
            return v
        unknown = [t for t in v if t not in EventTypes.ALL]
        if unknown:
            raise ValueError(f'Unknown notification types {unknown}; must be among: {", ".join(EventTypes.ALL)}')
        return v
