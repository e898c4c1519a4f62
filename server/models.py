"""
Request models for the Pithy server.

Field names follow the camelCase wire format used by the web client.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, validator

from core.confidence import CONFIDENCE_MODES


class CompressOptions(BaseModel):
    confidenceMode: Optional[str] = None
    enableCaching: Optional[bool] = True

    @validator('confidenceMode')
    def mode_must_be_known(cls, v):
        if v is not None and v not in CONFIDENCE_MODES:
            raise ValueError(f"confidenceMode must be one of {', '.join(CONFIDENCE_MODES)}")
        return v


class CompressRequest(BaseModel):
    text: str
    sessionId: Optional[str] = None
    options: Optional[CompressOptions] = None


class AppliedRulePayload(BaseModel):
    id: str
    originalText: str
    compressedForm: str
    pass_: Optional[int] = Field(None, alias="pass")
    confidence: Optional[float] = None

    class Config:
        extra = "allow"

    @validator('id', 'originalText')
    def must_not_be_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Invalid rule structure in rulesApplied")
        return v


class FeedbackRequest(BaseModel):
    satisfied: bool
    originalText: str
    compressedText: str
    rulesApplied: List[AppliedRulePayload]
    sessionId: Optional[str] = None
    compressionRatio: Optional[float] = None
    processingTime: Optional[float] = None

    @validator('originalText', 'compressedText')
    def text_not_empty(cls, v):
        if not v:
            raise ValueError("Missing originalText or compressedText")
        return v


class AddRuleRequest(BaseModel):
    originalText: str
    compressedForm: str
    confidenceScore: float = 0.70
    compressionType: Optional[str] = None
    notes: Optional[str] = None

    @validator('originalText', 'compressedForm')
    def strip_and_require(cls, v):
        if not v or not v.strip():
            raise ValueError("must be a non-empty string")
        return v.strip()

    @validator('confidenceScore')
    def confidence_in_range(cls, v):
        if v < 0 or v > 1:
            raise ValueError("confidenceScore must be between 0.00 and 1.00")
        return v

    @validator('compressionType')
    def type_is_word_or_phrase(cls, v):
        if v is not None and v not in ('word', 'phrase'):
            raise ValueError("compressionType must be 'word' or 'phrase'")
        return v


class ConfidenceOverrideRequest(BaseModel):
    patternId: str
    newConfidence: float
    reason: str = "Admin override"


class MarkReviewedRequest(BaseModel):
    missIds: List[str]
    notes: Optional[str] = None


class RuleFromMissRequest(BaseModel):
    missId: str
    compressedForm: str
    confidenceScore: float = 0.70

    @validator('compressedForm')
    def compressed_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("compressedForm must be a non-empty string")
        return v.strip()
