"""Pydantic schemas for the HEIC conversion API."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class FormatSupport(BaseModel):
    """Codec availability for one image format."""
    id: str = Field(..., description="Format identifier")
    input: bool = Field(..., description="Whether the format can be decoded")
    output: bool = Field(..., description="Whether the format can be encoded")


class SupportResponse(BaseModel):
    """HEIC capability check response."""
    supported: bool = Field(..., description="Whether HEIF input is supported")
    pillowVersion: Optional[str] = Field(None, description="Pillow version")
    pillowHeifVersion: Optional[str] = Field(None, description="pillow-heif version")
    libheifVersion: Optional[str] = Field(None, description="libheif version")
    formats: Dict[str, FormatSupport] = Field(..., description="Capabilities for heif, jpeg, png and webp")


class StatsResponse(BaseModel):
    """Conversion statistics response."""
    conversions: int = Field(..., description="Conversion attempts since process start")
    errors: int = Field(..., description="Failed conversion attempts")
    averageSize: int = Field(..., description="Average original size in bytes")
    averageConvertedSize: int = Field(..., description="Average converted size in bytes")
    averageTime: int = Field(..., description="Average conversion time in ms")
    successRate: float = Field(..., description="Successful attempts in percent")
    uptimeMs: int = Field(..., description="Milliseconds since statistics started")
    serverLoad: str = Field(..., description="Load classification: low, medium or high")
    conversionsToday: int = Field(..., description="Alias of conversions (since process start)")
    averageConversionTime: int = Field(..., description="Alias of averageTime")


class UploadedFileInfo(BaseModel):
    """Description of a file received by an upload endpoint."""
    fieldname: Optional[str] = Field(None, description="Form field name")
    originalname: Optional[str] = Field(None, description="Client filename")
    mimetype: Optional[str] = Field(None, description="Content type")
    size: int = Field(..., description="Size in bytes")


class UploadResponse(BaseModel):
    """Response for upload endpoints."""
    success: bool = Field(..., description="Whether the upload was accepted")
    files: List[UploadedFileInfo] = Field(default_factory=list, description="Received files, in upload order")
    fields: Optional[Dict[str, List[UploadedFileInfo]]] = Field(None, description="Received files by field name")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    services: Dict[str, Any] = Field(..., description="Service availability and metrics")


class ErrorResponse(BaseModel):
    """Error response model."""
    success: bool = Field(False, description="Always false for errors")
    message: str = Field(..., description="User-facing error message")
    error: str = Field(..., description="Machine-readable error code")
    details: Optional[Any] = Field(None, description="Technical details (development only)")
