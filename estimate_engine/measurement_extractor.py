"""
Measurement extraction from RoofScope / EagleView report pages.

Two page types are read through the extraction collaborator:
  summary page   -> totals, lengths, counts, complexity, project address
  area analysis  -> predominant pitch and steep / standard / flat squares

Responses are validated with pydantic before anything is trusted. On any
failure the functions return None and the caller keeps its prior state.
"""

import json
import logging
import time

from PIL import Image
from pydantic import BaseModel, Field, ValidationError

from estimate_engine.extraction import Extractor, extract_json, render_pdf_pages
from estimate_engine.models import SLOPE_BAND_FIELDS, CustomerInfo, Measurements

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 1500
ANALYSIS_MAX_TOKENS = 1000


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SUMMARY_PROMPT = """You are reading the SUMMARY page of a RoofScope or EagleView roof report.

MEASUREMENTS:
- total_squares: total roof area in squares (1 square = 100 sq ft)
- predominant_pitch: main roof pitch, e.g. "10/12"
- ridge_length, hip_length, valley_length, eave_length, rake_length: linear feet
- penetrations: number of pipe penetrations
- skylights, chimneys: counts
- complexity: Simple, Moderate or Complex

PROJECT INFORMATION (top of the report):
- project_address: full address with street, city, state and zip, without "USA"
- street_name: street number and name only, used as the customer name

Return ONLY a JSON object:
{
  "project_address": "<full address>",
  "street_name": "<street number and name>",
  "total_squares": <number>,
  "predominant_pitch": "<e.g. 6/12>",
  "ridge_length": <feet>,
  "hip_length": <feet>,
  "valley_length": <feet>,
  "eave_length": <feet>,
  "rake_length": <feet>,
  "penetrations": <count>,
  "skylights": <count>,
  "chimneys": <count>,
  "complexity": "<Simple|Moderate|Complex>"
}
Use 0 for values that are not visible and "" for missing address fields."""

ANALYSIS_PROMPT = """You are reading the ROOF AREA ANALYSIS page of a RoofScope or EagleView report.
The page shows a plane table (Plane | Area(sf) | Pitch | Slope | High | IWB(sf)) and/or
a Totals (SQ) table. Prefer the plane table when both are visible.

PREDOMINANT PITCH: group planes by pitch, sum Area(sf) per pitch, and return the pitch
with the largest area as "X/12".

SLOPE BREAKDOWN (squares = sq ft / 100):
- steep_squares: planes with Slope "S" (8/12 and above), or areas marked Steep/High
- standard_squares: planes with Slope "L" or blank, or areas marked Low/Standard
- flat_squares: planes with Slope "F", or areas marked Flat

Return ONLY a JSON object:
{
  "predominant_pitch": "<X/12 or null>",
  "steep_squares": <number or null>,
  "standard_squares": <number or null>,
  "flat_squares": <number or null>
}
Use null for values that are not visible."""


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class SummaryExtraction(BaseModel):
    project_address: str = ""
    street_name: str = ""
    total_squares: float = Field(default=0, ge=0)
    predominant_pitch: str = ""
    ridge_length: float = Field(default=0, ge=0)
    hip_length: float = Field(default=0, ge=0)
    valley_length: float = Field(default=0, ge=0)
    eave_length: float = Field(default=0, ge=0)
    rake_length: float = Field(default=0, ge=0)
    penetrations: int = Field(default=0, ge=0)
    skylights: int = Field(default=0, ge=0)
    chimneys: int = Field(default=0, ge=0)
    complexity: str = ""


class SlopeExtraction(BaseModel):
    predominant_pitch: str | None = None
    steep_squares: float | None = Field(default=None, ge=0)
    standard_squares: float | None = Field(default=None, ge=0)
    flat_squares: float | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def merge_measurements(existing: Measurements | None, new_data: dict) -> Measurements:
    """
    Overlay `new_data` on `existing`. Pitch and slope bands are only
    replaced when the new data actually provides them.
    """
    merged = {} if existing is None else {
        name: getattr(existing, name) for name in Measurements.__dataclass_fields__
    }
    for key, value in new_data.items():
        if key not in Measurements.__dataclass_fields__ or value is None:
            continue
        if key in ("predominant_pitch", "complexity") and value == "":
            continue
        merged[key] = value
    return Measurements(**merged)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def _call(extractor: Extractor, prompt: str, image: Image.Image, max_tokens: int, label: str) -> dict | None:
    t0 = time.time()
    raw = ""
    try:
        raw = extractor(prompt, image, max_tokens)
        data = json.loads(extract_json(raw))
        logger.info(f"[{label}] Extracted in {time.time() - t0:.1f}s")
        return data
    except json.JSONDecodeError as e:
        logger.warning(f"[{label}] JSON parse error after {time.time() - t0:.1f}s: {e}")
        logger.debug(f"[{label}] raw response was: {raw[:500]}")
    except Exception as e:
        logger.error(f"[{label}] failed after {time.time() - t0:.1f}s: {type(e).__name__}: {e}")
    return None


def extract_summary(image: Image.Image,
                    extractor: Extractor,
                    existing: Measurements | None = None,
                    customer: CustomerInfo | None = None) -> tuple[Measurements, CustomerInfo] | None:
    """
    Read a summary page. Returns (measurements, customer) merged over the
    existing values, or None when extraction or validation fails.
    """
    data = _call(extractor, SUMMARY_PROMPT, image, SUMMARY_MAX_TOKENS, "SUMMARY")
    if data is None:
        return None
    try:
        parsed = SummaryExtraction.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[SUMMARY] Response failed validation: {e}")
        return None

    customer = customer or CustomerInfo()
    updated_customer = CustomerInfo(
        name=parsed.street_name or customer.name,
        address=parsed.project_address or customer.address,
        phone=customer.phone,
    )
    fields = parsed.model_dump(exclude={"project_address", "street_name"})
    return merge_measurements(existing, fields), updated_customer


def extract_slope_breakdown(image: Image.Image,
                            extractor: Extractor,
                            existing: Measurements) -> Measurements | None:
    """Read an area-analysis page and merge pitch / slope bands into `existing`."""
    data = _call(extractor, ANALYSIS_PROMPT, image, ANALYSIS_MAX_TOKENS, "SLOPE ANALYSIS")
    if data is None:
        return None
    try:
        parsed = SlopeExtraction.model_validate(data)
    except ValidationError as e:
        logger.warning(f"[SLOPE ANALYSIS] Response failed validation: {e}")
        return None
    bands = {name: getattr(parsed, name) for name in SLOPE_BAND_FIELDS}
    return merge_measurements(existing, {"predominant_pitch": parsed.predominant_pitch or "", **bands})


def extract_summary_from_pdf(pdf_path: str,
                             extractor: Extractor,
                             page: int = 1,
                             existing: Measurements | None = None,
                             customer: CustomerInfo | None = None) -> tuple[Measurements, CustomerInfo] | None:
    """Render one page of a report PDF and read it as a summary page."""
    pages = render_pdf_pages(pdf_path, [page])
    if not pages:
        logger.warning(f"[SUMMARY] Page {page} not found in {pdf_path}")
        return None
    return extract_summary(pages[0][1], extractor, existing, customer)
