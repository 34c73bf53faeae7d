from chatbot.schemas.base import CamelModel


class UploadResponse(CamelModel):
    url: str
    pathname: str
    content_type: str
