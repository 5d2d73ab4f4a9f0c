"""
Runtime configuration read from the environment (.env supported).

Environment:
    GEMINI_API_KEY            - Google Gemini API key for the extraction service
    ESTIMATOR_MODEL           - Gemini model name
    ORGANIZE_TIMEOUT_SECONDS  - hard timeout for proposal organization
    DEFAULT_MARGIN_PERCENT, DEFAULT_WASTE_PERCENT,
    DEFAULT_OFFICE_PERCENT, DEFAULT_SALES_TAX_PERCENT, SUNDRIES_PERCENT
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    value = os.environ.get(name, "")
    try:
        return float(value) if value.strip() else default
    except ValueError:
        return default


GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
DEFAULT_MODEL = os.environ.get("ESTIMATOR_MODEL", "gemini-2.5-flash")
ORGANIZE_TIMEOUT_SECONDS = _env_float("ORGANIZE_TIMEOUT_SECONDS", 15.0)

DEFAULT_MARGIN_PERCENT = _env_float("DEFAULT_MARGIN_PERCENT", 40.0)
DEFAULT_WASTE_PERCENT = _env_float("DEFAULT_WASTE_PERCENT", 10.0)
DEFAULT_OFFICE_PERCENT = _env_float("DEFAULT_OFFICE_PERCENT", 10.0)
DEFAULT_SALES_TAX_PERCENT = _env_float("DEFAULT_SALES_TAX_PERCENT", 10.0)
SUNDRIES_PERCENT = _env_float("SUNDRIES_PERCENT", 10.0)
