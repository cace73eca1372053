"""Pydantic schemas for request/response validation."""

from kalakar.schemas.common import ErrorResponse, HealthResponse
from kalakar.schemas.product import ConfidenceMap, Dimensions, Pricing, ProductInfo

__all__ = [
    "ConfidenceMap",
    "Dimensions",
    "ErrorResponse",
    "HealthResponse",
    "Pricing",
    "ProductInfo",
]
