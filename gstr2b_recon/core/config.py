from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    PROJECT_NAME: str = "GSTR-2B Reconciliation Service"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Matching rules
    TAX_TOLERANCE: Decimal = Decimal("1.00")
    FUZZY_DATE_WINDOW_DAYS: int = 30

    # Invoice-series decorations stripped before comparison (regex, matched on upper-cased text)
    INVOICE_PREFIX_PATTERNS: List[str] = [
        r"FY25-26/",
        r"GST-25-26/",
        r"EP/2025-26/",
        r"JE/2025-26/",
        r"TIA/T/\d+/24-25/",
        r"TIA/T/",
    ]
    INVOICE_SUFFIX_PATTERNS: List[str] = [
        r"/24-25",
        r"/25-26",
    ]

    # Ingestion
    HEADER_SCAN_ROWS: int = 20
    MAX_UPLOAD_ROWS: int = 50000

    # Reporting
    HIGH_PRIORITY_THRESHOLD: Decimal = Decimal("10000")
    MEDIUM_PRIORITY_THRESHOLD: Decimal = Decimal("1000")
    TOP_MISSING_LIMIT: int = 10

    model_config = SettingsConfigDict(case_sensitive=True)


settings = Settings()
