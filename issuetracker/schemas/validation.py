from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from issuetracker.errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)


def validate_body(model: type[M], payload: dict[str, Any] | None) -> M:
    """
    Validate a raw JSON body against `model`.

    Handlers take the body as a plain dict and call this after authorization,
    so an unauthorized caller never learns anything from validation errors.
    """

    try:
        return model.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise ValidationFailed(exc.errors(include_url=False, include_context=False, include_input=False)) from exc
