# ============================================================================
# src/lab_intelligence/config/thresholds_config.py
# ============================================================================
"""
Confidence Scoring
- Base confidence of a grammar match
- Increments for unit / range / flag / numeric value
- Penalties for suspicious names and values
- Volume bonus for the aggregate extraction confidence
"""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

class ThresholdSettings(BaseSettings):
    BASE_MATCH_CONFIDENCE: float = Field(
        default=0.8,
        ge=0.0, le=1.0,
        description="Starting confidence for any line accepted by a grammar"
    )
    UNIT_BONUS: float = Field(
        default=0.1,
        ge=0.0, le=1.0,
        description="Added when the line carries a unit"
    )
    RANGE_BONUS: float = Field(
        default=0.1,
        ge=0.0, le=1.0,
        description="Added when the line carries a reference range"
    )
    FLAG_BONUS: float = Field(
        default=0.05,
        ge=0.0, le=1.0,
        description="Added when the line carries an explicit abnormal flag"
    )
    NUMERIC_BONUS: float = Field(
        default=0.1,
        ge=0.0, le=1.0,
        description="Added when the value parses as a number"
    )
    SHORT_NAME_PENALTY: float = Field(
        default=0.2,
        ge=0.0, le=1.0,
        description="Subtracted when the raw test name is shorter than MIN_CONFIDENT_NAME_LENGTH"
    )
    LONG_VALUE_PENALTY: float = Field(
        default=0.1,
        ge=0.0, le=1.0,
        description="Subtracted when the raw value is longer than MAX_CONFIDENT_VALUE_LENGTH"
    )
    LOOKUP_FAILURE_PENALTY: float = Field(
        default=0.05,
        ge=0.0, le=1.0,
        description="Subtracted when the flag had to default to N for lack of a reference range. Must stay below NUMERIC_BONUS."
    )
    MIN_CONFIDENT_NAME_LENGTH: int = Field(
        default=3,
        ge=1,
        description="Names shorter than this are penalised"
    )
    MAX_CONFIDENT_VALUE_LENGTH: int = Field(
        default=10,
        ge=1,
        description="Values longer than this are penalised"
    )
    VOLUME_BONUS_PER_VALUE: float = Field(
        default=0.01,
        ge=0.0, le=1.0,
        description="Aggregate confidence bonus per extracted value"
    )
    VOLUME_BONUS_CAP: float = Field(
        default=0.1,
        ge=0.0, le=1.0,
        description="Upper bound of the volume bonus"
    )

    @model_validator(mode="after")
    def check_lookup_penalty(self):
        # A numeric value without a known range must still score higher
        # than no numeric value at all
        if self.LOOKUP_FAILURE_PENALTY >= self.NUMERIC_BONUS:
            raise ValueError(
                f"LOOKUP_FAILURE_PENALTY ({self.LOOKUP_FAILURE_PENALTY}) must be "
                f"below NUMERIC_BONUS ({self.NUMERIC_BONUS})"
            )
        return self

threshold_settings = ThresholdSettings()
