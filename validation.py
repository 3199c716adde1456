"""
Payload validation

Wraps pydantic so that every route gets the same outcome: either a typed
payload or a ValidationFailure carrying a field-path keyed error map.
"""

from typing import Any, Dict, List, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

M = TypeVar("M", bound=BaseModel)


class ValidationFailure(Exception):
    def __init__(self, field_errors: Dict[str, List[str]]):
        self.field_errors = field_errors
        # Always prefixed "Invalid": field errors come from schema rules, never from the
        # store, so production echoes them and only non-payload errors collapse to generic.
        parts = [f"{field}: {'; '.join(messages)}" for field, messages in field_errors.items()]
        super().__init__("Invalid " + ", ".join(parts) if parts else "Invalid input")


def field_errors_from(exc: PydanticValidationError) -> Dict[str, List[str]]:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        path = ".".join(str(p) for p in err["loc"]) or "_root"
        message = err["msg"]
        # pydantic prefixes messages raised from our own validators
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(path, []).append(message)
    return errors


def validate(raw: Any, schema: Type[M]) -> M:
    if not isinstance(raw, dict):
        raise ValidationFailure({"_root": ["must be a JSON object"]})
    try:
        return schema.model_validate(raw)
    except PydanticValidationError as exc:
        raise ValidationFailure(field_errors_from(exc)) from exc


def split_csv(value: Any) -> Any:
    """Turn "a, b,,c" into ["a", "b", "c"]; lists pass through untouched."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value
