"""Base Pydantic response models."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseResponse(BaseModel):
    """Base response model with common configuration."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )


class ErrorResponse(BaseModel):
    """Standard error response model."""

    error: dict[str, Any] = Field(description="Error details")

    @classmethod
    def create(
        cls,
        code: int,
        message: str,
        correlation_id: str | None = None,
        **extra: Any,
    ) -> "ErrorResponse":
        """Create a standardized error response.

        Args:
            code: HTTP status code.
            message: Error message.
            correlation_id: Request correlation ID.
            **extra: Additional fields merged into the error body.

        Returns:
            ErrorResponse instance.
        """
        error: dict[str, Any] = {
            "code": code,
            "message": message,
            "correlation_id": correlation_id,
        }
        error.update(extra)
        return cls(error=error)
