"""
Typed decoders for generative-text provider response bodies.

Decoding is strict about structure (a body without the expected envelope is a
validation error) and lenient about content (an envelope with no text decodes
to an empty string).
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class GeminiPart(BaseModel):
    text: Optional[str] = None


class GeminiContent(BaseModel):
    parts: List[GeminiPart] = Field(default_factory=list)
    role: Optional[str] = None


class GeminiCandidate(BaseModel):
    content: Optional[GeminiContent] = None
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")

    class Config:
        populate_by_name = True
        extra = "ignore"


class GeminiResponse(BaseModel):
    """Body of a `models/<model>:generateContent` call."""

    candidates: List[GeminiCandidate] = Field(..., min_length=1)

    class Config:
        extra = "ignore"

    def text(self) -> str:
        """Join all text parts of the first candidate (single- or multi-part)."""
        content = self.candidates[0].content
        if content is None:
            return ""
        return "".join(part.text for part in content.parts if part.text).strip()


class OpenAIMessage(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class OpenAIChoice(BaseModel):
    message: OpenAIMessage
    finish_reason: Optional[str] = None

    class Config:
        extra = "ignore"


class OpenAIChatResponse(BaseModel):
    """Body of a chat-completions call."""

    choices: List[OpenAIChoice] = Field(..., min_length=1)

    class Config:
        extra = "ignore"

    def text(self) -> str:
        return (self.choices[0].message.content or "").strip()
