"""
Input schemas.

parse_input turns a dict (or an already built model) into a validated
schema instance, raising ValidationFailureError on bad input.
"""
from typing import Any, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from purchase_timeline.exceptions import ValidationFailureError
from purchase_timeline.schemas.timeline import (
    InputModel,
    StepTemplateInput,
    CreateTimelineInput,
    UpdateTimelineInput,
    CreateStepInput,
    UpdateStepInput,
    StepOrderUpdate,
    ReorderStepsInput,
    CreateDocumentInput,
    UploadDocumentInput,
    AddTeamMemberInput,
    UpdateTeamMemberInput,
    CreateNoteInput,
    UpdateNoteInput,
    AddStepCommentInput,
    UpdateCommentInput,
)

M = TypeVar("M", bound=BaseModel)


def parse_input(schema: Type[M], data: Union[M, dict, None] = None, **fields: Any) -> M:
    """
    Validate input against a schema.

    Args:
        schema: Pydantic model class
        data: Model instance or dict of fields
        **fields: Fields given as keywords, merged over ``data``

    Returns:
        Validated model instance

    Raises:
        ValidationFailureError: If validation fails
    """
    if isinstance(data, schema) and not fields:
        return data

    if isinstance(data, BaseModel):
        payload = data.model_dump(exclude_unset=True)
    else:
        payload = dict(data or {})
    payload.update(fields)

    try:
        return schema.model_validate(payload)
    except ValidationError as e:
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in e.errors()
        ]
        raise ValidationFailureError(
            f"Invalid {schema.__name__}: {len(errors)} error(s)",
            errors=errors,
        ) from e


__all__ = [
    "parse_input",
    "InputModel",
    "StepTemplateInput",
    "CreateTimelineInput",
    "UpdateTimelineInput",
    "CreateStepInput",
    "UpdateStepInput",
    "StepOrderUpdate",
    "ReorderStepsInput",
    "CreateDocumentInput",
    "UploadDocumentInput",
    "AddTeamMemberInput",
    "UpdateTeamMemberInput",
    "CreateNoteInput",
    "UpdateNoteInput",
    "AddStepCommentInput",
    "UpdateCommentInput",
]
