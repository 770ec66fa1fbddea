from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

ResponseType = Literal["reply", "quote"]


class Author(BaseModel):
    model_config = ConfigDict(frozen=True)

    handle: str = ""
    display_name: str = ""
    is_verified: bool = False
    bio: str | None = None


class QuotedPost(BaseModel):
    model_config = ConfigDict(frozen=True)

    author: Author = Field(default_factory=Author)
    text: str = ""


class PostData(BaseModel):
    model_config = ConfigDict(frozen=True)

    post_id: str | None = None
    url: str | None = None
    text: str = ""
    author: Author = Field(default_factory=Author)
    has_media: bool | None = None   # None = unknown, line omitted from the prompt
    quoted_post: QuotedPost | None = None

    @property
    def key(self) -> str | None:
        """Context-store key: the post id, falling back to its URL."""
        return self.post_id or self.url


class ProfileContext(BaseModel):
    handle: str
    display_name: str = ""
    bio: str = ""
    follower_count: int = 0
    follower_category: str = "small"
    category: str = "unknown"
    is_verified: bool = False
    cached_at: float = 0.0


class DraftResponse(BaseModel):
    text: str
    tone: str = "standard"
    type: ResponseType


class GenerationResult(BaseModel):
    analysis: dict[str, Any] | None = None
    responses: list[DraftResponse] = []
    validation_warning: str | None = None


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cached_tokens=self.cached_tokens + other.cached_tokens,
        )


class ProviderResult(BaseModel):
    result: dict[str, Any]
    usage: Usage = Field(default_factory=Usage)
