"""Error types raised by the services and rendered by the API."""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError


class AppError(Exception):
    status_code = 500
    error_type = "internal"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class ValidationError(AppError):
    status_code = 400
    error_type = "validation"
    default_message = "Validation failed"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        if self.errors:
            body["errors"] = self.errors
        return body

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Build from a pydantic ValidationError or FastAPI RequestValidationError."""
        errors = []
        for error in exc.errors():
            # Drop the "body"/"query" prefix FastAPI puts in front of the field name
            location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            message = error.get("msg", "Invalid value")
            # pydantic prefixes custom ValueError messages with "Value error, "
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.append({"field": ".".join(location), "message": message})
        if errors:
            first = errors[0]
            summary = f"{first['field']}: {first['message']}" if first["field"] else first["message"]
        else:
            summary = None
        return cls(summary, errors)


class Unauthorized(AppError):
    status_code = 401
    error_type = "authentication"
    default_message = "Not authorized"


class NotFound(AppError):
    status_code = 404
    error_type = "not_found"
    default_message = "Not found"


class Conflict(AppError):
    # The signup form reports duplicates as a plain bad request
    status_code = 400
    error_type = "conflict"
    default_message = "Conflict"


class InternalError(AppError):
    pass


def validate_model(model, data):
    """Return ``data`` as an instance of ``model``, raising ValidationError on bad input."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc) from exc
