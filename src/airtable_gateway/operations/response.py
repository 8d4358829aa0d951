"""Uniform operation results."""

import json
from dataclasses import dataclass, field
from typing import Any

from core.utils.json_serializers import json_serializer


@dataclass
class OperationResult:
    """
    Result of one gateway operation.

    ``structured_content`` is the typed payload; ``content`` carries the same
    data rendered as text blocks for clients that only display text.
    """

    content: list[dict[str, str]] = field(default_factory=list)
    structured_content: dict[str, Any] | None = None
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"content": self.content}
        if self.structured_content is not None:
            data["structuredContent"] = self.structured_content
        if self.is_error:
            data["isError"] = True
        return data


def create_response(data: dict[str, Any]) -> OperationResult:
    return OperationResult(
        structured_content=data,
        content=[
            {
                "type": "text",
                "text": json.dumps(data, indent=2, ensure_ascii=False, default=json_serializer),
            }
        ],
    )


def create_error_response(message: str) -> OperationResult:
    return OperationResult(content=[{"type": "text", "text": message}], is_error=True)


__all__ = ["OperationResult", "create_response", "create_error_response"]
