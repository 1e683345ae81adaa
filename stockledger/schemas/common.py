"""
Stock Ledger Common Schemas
Shared Pydantic models for common API structures
"""
from pydantic import BaseModel, Field
from typing import Any, Optional


class ErrorResponse(BaseModel):
    """
    Standard error response model

    Used for all API error responses
    """
    error: str = Field(..., description="Error type or category")
    message: str = Field(..., description="Human-readable error message")
    detail: Optional[Any] = Field(None, description="Structured error details")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "insufficient_stock",
                "message": "Insufficient stock: Corn Silage (have 4 tons, need 6)",
                "detail": [{
                    "item_id": "3f0c...",
                    "item_name": "Corn Silage",
                    "current": 4,
                    "required": 6,
                    "shortfall": 2,
                    "unit": "tons"
                }]
            }
        }
    }


class SuccessResponse(BaseModel):
    """Standard success response model"""
    success: bool = Field(True, description="Operation success status")
    message: str = Field(..., description="Success message")
