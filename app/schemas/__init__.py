"""
app.schemas
~~~~~~~~~~~
Pydantic schemas for the REST API and the collaboration WebSocket protocol.
"""
from app.schemas.api_response import ApiResponse
from app.schemas.collab_events import (
    CodeChangePayload,
    CompileCodePayload,
    Envelope,
    ExecutionRequest,
    JoinPayload,
    LanguageChangePayload,
    RoomInfoData,
    TypingPayload,
    compilation_failed,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
