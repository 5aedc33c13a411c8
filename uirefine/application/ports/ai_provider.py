from dataclasses import dataclass
from typing import Protocol, Sequence, Union


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data: str  # base64 payload


ContentPart = Union[TextPart, ImagePart]


class AIProvider(Protocol):
    def configured(self) -> bool:
        ...

    def generate_report(self, parts: Sequence[ContentPart]) -> str:
        ...
