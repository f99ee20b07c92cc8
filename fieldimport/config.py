"""
Import pipeline settings.

- Escalation thresholds (how few fields count as "too few").
- OCR viability floor (word count + average confidence).
- OCR rendering / language, and the external OCR text service endpoint.

Everything here can be overridden with FIELDIMPORT_* environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ImportSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FIELDIMPORT_")

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    CONFIDENT_THRESHOLD: float = Field(
        default=0.6,
        ge=0.0, le=1.0,
        description="Per-field confidence at or above which a field counts as confident"
    )
    MIN_FIELDS_BEFORE_ESCALATION: int = Field(
        default=2,
        ge=0,
        description="A strategy yielding fewer fields than this escalates to the next one"
    )
    MIN_CONFIDENT_FOR_REGIONS: int = Field(
        default=4,
        ge=0,
        description="Region templates are tried only below this many confident anchor fields"
    )

    ALLOW_OCR: bool = Field(default=True, description="Allow local OCR when the text layer is thin")
    OCR_DPI: int = Field(default=300, gt=0, description="Rasterisation resolution for local OCR")
    OCR_LANGUAGE: str = Field(default="eng", description="Single Tesseract language")
    OCR_MIN_WORDS: int = Field(default=20, ge=0, description="Fewer recognised words means OCR failed")
    OCR_MIN_AVG_CONFIDENCE: float = Field(
        default=60.0,
        ge=0.0, le=100.0,
        description="Lower average word confidence means OCR failed"
    )
    OCR_LOW_QUALITY_WORD_CONFIDENCE: float = Field(
        default=35.0,
        ge=0.0, le=100.0,
        description="Words under this confidence mark their page as low quality in stats"
    )

    OCR_SERVICE_URL: str = Field(
        default="http://localhost:3002/api/ocr",
        description="External OCR text service used as the last-resort fallback"
    )
    OCR_SERVICE_TIMEOUT: float = Field(default=120.0, gt=0, description="Seconds for the OCR service call")
    OCR_SERVICE_DPI: int = Field(default=400, gt=0, description="Rendering resolution used by the OCR service")
    OCR_SERVICE_PSM: int = Field(default=4, ge=0, le=13, description="Tesseract page segmentation mode for the service")
    OCR_SERVER_HOST: str = Field(default="0.0.0.0")
    OCR_SERVER_PORT: int = Field(default=3002)


settings = ImportSettings()
