from typing import Dict, List, Optional, Tuple, Type, TypeVar, Union
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)

FORM_ERRORS_KEY = "_form"


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """Group pydantic errors by dotted field path, e.g. ``customer.name`` or ``items.0.quantity``."""
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        key = ".".join(str(part) for part in error["loc"]) or FORM_ERRORS_KEY
        message = error["msg"]
        # value errors raised by our validators carry a "Value error, " prefix
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.setdefault(key, []).append(message)
    return errors


def validate(
    model: Type[ModelT], data: Union[ModelT, dict]
) -> Tuple[Optional[ModelT], Optional[Dict[str, List[str]]]]:
    """Return ``(value, None)`` for valid input, ``(None, errors)`` otherwise."""
    if isinstance(data, model):
        return data, None
    try:
        return model.model_validate(data), None
    except ValidationError as exc:
        return None, field_errors(exc)
