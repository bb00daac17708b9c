from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageBody(BaseModel):
    """Body of a Device Bridge "send message" call."""

    model_config = ConfigDict(populate_by_name=True)

    data: Optional[Dict[str, Any]] = None
    properties: Optional[Dict[str, str]] = None
    component_name: Optional[str] = Field(default=None, alias="componentName")
    creation_time_utc: Optional[datetime] = Field(default=None, alias="creationTimeUtc")

    def to_json(self) -> Dict[str, Any]:
        """JSON payload for the Bridge. Unset fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BridgeResponse(BaseModel):
    status_code: int
