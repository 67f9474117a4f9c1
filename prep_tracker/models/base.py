from __future__ import annotations

from typing import Any, Self

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from prep_tracker.core.errors import ResponseFormatError


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON, populated by either name.

    Server payloads are read-only snapshots on the client, hence frozen.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    @classmethod
    def from_response(cls, body: Any, *, path: str = "") -> Self:
        """Parse a server body, raising ResponseFormatError on a shape mismatch."""
        try:
            return cls.model_validate(body)
        except PydanticValidationError as exc:
            first = exc.errors()[0]
            field = ".".join(str(part) for part in first["loc"]) or "body"
            raise ResponseFormatError(
                f"unexpected {cls.__name__} from {path or 'the API'}: {field}: {first['msg']}",
                path=path,
                body=repr(body)[:500],
            ) from exc
