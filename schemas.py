from enum import Enum
from typing import Annotated, Literal, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Directive(NamedTuple):
    """A single codec instruction: option name plus optional value."""

    option: str
    value: Optional[str] = None

    def args(self) -> list[str]:
        if self.value is None:
            return [self.option]
        return [self.option, self.value]


class Quality(str, Enum):
    """Client-requested quality reduction tier."""

    DEFAULT = "default"
    LOW = "low"
    LOWER = "lower"


class Image(BaseModel):
    """Encoded image bytes plus an identifier used for log correlation.

    mime_type is empty when the bytes keep the source format.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    data: bytes
    mime_type: str = ""


class Info(BaseModel):
    """Image metadata reported by a codec's identify call."""

    model_config = ConfigDict(frozen=True)

    format: str = ""
    quality: int = 0
    opaque: bool = False
    width: int = 0
    height: int = 0
    size: int = 0
    illustration: bool = False


class ResizeConfig(BaseModel):
    """Payload for Resize and FitToSize."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["resize"] = "resize"
    size: str


class OptimiseConfig(BaseModel):
    """Payload for Optimise (no parameters)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["optimise"] = "optimise"


OperationConfig = Annotated[
    Union[ResizeConfig, OptimiseConfig],
    Field(discriminator="kind"),
]


class TransformationConfig(BaseModel):
    """Everything a single transformation call needs."""

    model_config = ConfigDict(frozen=True)

    src: Image
    quality: Quality = Quality.DEFAULT
    supported_formats: dict[str, bool] = Field(default_factory=dict)
    config: OperationConfig = Field(default_factory=OptimiseConfig)


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    error: str
    message: str


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    codec: str
    tools: dict
    version: str
