from pydantic import BaseModel, Field


class VoiceReply(BaseModel):
    text: str
    is_finished: bool = Field(True, serialization_alias="isFinished")


class VoiceResponse(BaseModel):
    transcript: str
    response: VoiceReply
