from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.errors import ValidationError
from core.models import ACTIONS

M = TypeVar("M", bound=BaseModel)


def _translate(exc: PydanticValidationError) -> ValidationError:
    """Turns the first pydantic error into a field-level ValidationError."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "__root__"
    message = first["msg"]
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return ValidationError(field, first["type"], f"{field}: {message}")


def parse_model(cls: Type[M], data: Any) -> M:
    """Builds a model from raw data, raising ValidationError on bad input."""
    try:
        return cls.model_validate(data)
    except PydanticValidationError as e:
        raise _translate(e) from None


def ensure_valid(model: M) -> M:
    """
    Re-runs every field rule of an already constructed model.

    Models built with `model_construct`, mutated after creation or decoded
    from corrupt persisted state are caught here.
    """
    data = model.model_dump()
    try:
        type(model).model_validate(data)
    except PydanticValidationError as e:
        raise _translate(e) from None
    return model


def ensure_action(action: str) -> str:
    if action not in ACTIONS:
        raise ValidationError("action", "oneof", f"action must be one of {ACTIONS}: {action!r}")
    return action
