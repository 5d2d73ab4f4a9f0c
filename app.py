"""
Roofing Estimate Engine - FastAPI Web Application

Run with: python app.py
Or:       uvicorn app:app --reload
Opens at: http://127.0.0.1:8000
"""

import logging
import shutil
import tempfile
from dataclasses import asdict
from functools import lru_cache
from pathlib import Path
from uuid import uuid4

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field

from estimate_engine import config
from estimate_engine.accessories import (
    calculate_heat_tape,
    calculate_snow_fence,
    calculate_snow_guards,
    get_accessory_prices,
)
from estimate_engine.auto_selection import AutoSelectionContext, apply_auto_selection_rules
from estimate_engine.client_view import build_client_sections, render_client_text
from estimate_engine.csv_codec import CSV_TEMPLATE, CsvImportError, export_estimate_csv, parse_estimate_csv
from estimate_engine.database import default_price_items
from estimate_engine.descriptions import generate_descriptions
from estimate_engine.extraction import Extractor, default_extractor
from estimate_engine.financials import FinancialSettings, recalculate_financials
from estimate_engine.kit_grouping import group_items_into_kits, group_proposal_kits
from estimate_engine.measurement_extractor import extract_summary_from_pdf
from estimate_engine.models import (
    Building,
    CustomerInfo,
    Estimate,
    Measurements,
    PriceItem,
    VendorQuote,
    VendorQuoteItem,
)
from estimate_engine.multi_building import calculate_multi_building_estimate
from estimate_engine.proposal_organizer import organize_proposal
from estimate_engine.quantities import review_estimate
from estimate_engine.smart_selection import smart_select
from estimate_engine.validator import validate_estimate
from estimate_engine.vendors import group_vendor_items, normalize_vendor

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger("estimate_app")

app = FastAPI(title="Roofing Estimate Engine")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

UPLOAD_DIR = Path(tempfile.gettempdir()) / "estimate_engine_uploads"
UPLOAD_DIR.mkdir(exist_ok=True)


# -- Jinja2 custom filters --

def currency_filter(value):
    try:
        return f"${value:,.2f}"
    except (ValueError, TypeError):
        return str(value)


def number_filter(value):
    try:
        return f"{value:,.2f}".rstrip("0").rstrip(".")
    except (ValueError, TypeError):
        return str(value)


templates.env.filters["currency"] = currency_filter
templates.env.filters["number"] = number_filter


@lru_cache(maxsize=1)
def get_extractor() -> Extractor | None:
    """Extraction collaborator shared by the LLM-assisted endpoints."""
    return default_extractor()


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class SettingsIn(BaseModel):
    margin_percent: float = config.DEFAULT_MARGIN_PERCENT
    waste_percent: float = config.DEFAULT_WASTE_PERCENT
    office_percent: float = config.DEFAULT_OFFICE_PERCENT
    sales_tax_percent: float = config.DEFAULT_SALES_TAX_PERCENT
    sundries_percent: float = config.SUNDRIES_PERCENT

    def to_settings(self) -> FinancialSettings:
        return FinancialSettings(**self.model_dump())


class CsvImportRequest(BaseModel):
    csv_text: str
    settings: SettingsIn = Field(default_factory=SettingsIn)


class EstimateRequest(BaseModel):
    estimate: dict
    settings: SettingsIn = Field(default_factory=SettingsIn)


class KitRequest(BaseModel):
    estimate: dict
    mode: str = "display"  # display | proposal


class OrganizeRequest(BaseModel):
    estimate: dict
    locked_ids: list[str] = Field(default_factory=list)
    extra_equipment: list[tuple[str, float]] = Field(default_factory=list)


class SelectionRequest(BaseModel):
    job_description: str = ""
    price_items: list[dict] | None = None
    vendor_quotes: list[dict] = Field(default_factory=list)
    vendor_quote_items: list[dict] = Field(default_factory=list)
    selected_labor_items: list[str] = Field(default_factory=list)
    measurements: dict | None = None
    is_tear_off: bool = False


class MultiBuildingRequest(BaseModel):
    buildings: list[dict]
    price_items: list[dict] | None = None
    settings: SettingsIn = Field(default_factory=SettingsIn)
    vendor_quotes: list[dict] = Field(default_factory=list)
    vendor_quote_items: list[dict] = Field(default_factory=list)
    vendor_quantities: dict[str, float] = Field(default_factory=dict)
    vendor_adjusted_prices: dict[str, float] = Field(default_factory=dict)
    labor_item_id: str | None = None
    customer_info: dict = Field(default_factory=dict)


class VendorGroupRequest(BaseModel):
    vendor_quotes: list[dict]
    vendor_quote_items: list[dict]
    quantities: dict[str, float] = Field(default_factory=dict)
    adjusted_prices: dict[str, float] = Field(default_factory=dict)


class AccessoryRequest(BaseModel):
    measurements: dict
    price_items: list[dict] | None = None


class DescriptionRequest(BaseModel):
    price_items: list[dict] | None = None


# -- body helpers --

def _price_items(raw: list[dict] | None) -> list[PriceItem]:
    if raw is None:
        return default_price_items()
    return [PriceItem.from_dict(p) for p in raw]


def _vendor_quotes(raw: list[dict]) -> list[VendorQuote]:
    return [
        VendorQuote(id=str(q["id"]), vendor=normalize_vendor(q.get("vendor")),
                    file_name=str(q.get("file_name", "")))
        for q in raw
    ]


def _estimate(raw: dict) -> Estimate:
    try:
        return Estimate.from_dict(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=[f"Invalid estimate: {e}"])


def _measurements(raw: dict | None) -> Measurements:
    try:
        return Measurements.from_dict(raw or {})
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=[str(e)])


def _settings(body: SettingsIn) -> FinancialSettings:
    settings = body.to_settings()
    try:
        settings.validate()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=[str(e)])
    return settings


# ---------------------------------------------------------------------------
# Landing page + CSV upload
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
def index(request: Request):
    return templates.TemplateResponse(request, "index.html", {
        "defaults": SettingsIn(),
    })


@app.post("/estimate/upload", response_class=HTMLResponse)
async def estimate_upload(
    request: Request,
    csv_file: UploadFile = File(...),
    margin_percent: float = Form(config.DEFAULT_MARGIN_PERCENT),
    waste_percent: float = Form(config.DEFAULT_WASTE_PERCENT),
    office_percent: float = Form(config.DEFAULT_OFFICE_PERCENT),
    sales_tax_percent: float = Form(config.DEFAULT_SALES_TAX_PERCENT),
):
    settings_in = SettingsIn(
        margin_percent=margin_percent,
        waste_percent=waste_percent,
        office_percent=office_percent,
        sales_tax_percent=sales_tax_percent,
    )
    csv_text = (await csv_file.read()).decode("utf-8", errors="replace")

    try:
        estimate = parse_estimate_csv(csv_text, settings_in.to_settings())
    except CsvImportError as e:
        logger.warning(f"/estimate/upload rejected {csv_file.filename}: {e.errors}")
        return templates.TemplateResponse(request, "index.html", {
            "defaults": settings_in,
            "errors": e.errors,
        }, status_code=400)
    except ValueError as e:
        return templates.TemplateResponse(request, "index.html", {
            "defaults": settings_in,
            "errors": [str(e)],
        }, status_code=400)

    logger.info(f"/estimate/upload parsed {csv_file.filename}: "
                f"{len(estimate.line_items)} item(s), final ${estimate.final_price:,.2f}")

    return templates.TemplateResponse(request, "estimate.html", {
        "filename": csv_file.filename,
        "estimate": estimate,
        "kits": group_items_into_kits(estimate.line_items),
        "sections": build_client_sections(estimate),
        "validation": validate_estimate(estimate),
        "review": review_estimate(estimate),
    })


# ---------------------------------------------------------------------------
# Estimate JSON API
# ---------------------------------------------------------------------------

@app.post("/api/estimate/import")
def api_import_csv(body: CsvImportRequest):
    try:
        estimate = parse_estimate_csv(body.csv_text, _settings(body.settings))
    except CsvImportError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    return estimate.to_dict()


@app.get("/api/estimate/template", response_class=PlainTextResponse)
def api_csv_template():
    return PlainTextResponse(CSV_TEMPLATE, media_type="text/csv", headers={
        "Content-Disposition": 'attachment; filename="estimate_template.csv"',
    })


@app.post("/api/estimate/export", response_class=PlainTextResponse)
def api_export_csv(body: EstimateRequest):
    estimate = _estimate(body.estimate)
    name = estimate.customer_info.name or "estimate"
    return PlainTextResponse(export_estimate_csv(estimate), media_type="text/csv", headers={
        "Content-Disposition": f'attachment; filename="{name}.csv"',
    })


@app.post("/api/estimate/recalculate")
def api_recalculate(body: EstimateRequest):
    settings = _settings(body.settings)
    try:
        return recalculate_financials(_estimate(body.estimate), settings).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=[str(e)])


@app.post("/api/estimate/validate")
def api_validate(body: EstimateRequest):
    return asdict(validate_estimate(_estimate(body.estimate)))


@app.post("/api/estimate/review")
def api_review(body: EstimateRequest):
    return {"warnings": review_estimate(_estimate(body.estimate))}


@app.post("/api/estimate/client")
def api_client_view(body: EstimateRequest):
    estimate = _estimate(body.estimate)
    return {
        "sections": [asdict(s) for s in build_client_sections(estimate)],
        "text": render_client_text(estimate),
    }


@app.post("/api/estimate/kits")
def api_kits(body: KitRequest):
    estimate = _estimate(body.estimate)
    if body.mode == "proposal":
        grouped = group_proposal_kits(estimate.line_items)
    elif body.mode == "display":
        grouped = group_items_into_kits(estimate.line_items)
    else:
        raise HTTPException(status_code=400, detail=[f"Unknown kit mode '{body.mode}'"])
    return [asdict(g) for g in grouped]


@app.post("/api/proposal/organize")
def api_organize(body: OrganizeRequest, extractor: Extractor | None = Depends(get_extractor)):
    organized = organize_proposal(
        _estimate(body.estimate),
        extractor,
        locked_ids=set(body.locked_ids),
        extra_equipment=list(body.extra_equipment),
    )
    return asdict(organized)


# ---------------------------------------------------------------------------
# Selection + multi-building
# ---------------------------------------------------------------------------

def _selection_context(body: SelectionRequest) -> AutoSelectionContext:
    return AutoSelectionContext(
        job_description=body.job_description,
        available_price_items=_price_items(body.price_items),
        vendor_quotes=_vendor_quotes(body.vendor_quotes),
        vendor_quote_items=[VendorQuoteItem.from_dict(v) for v in body.vendor_quote_items],
        selected_labor_items=list(body.selected_labor_items),
    )


@app.post("/api/auto-select")
def api_auto_select(body: SelectionRequest):
    return asdict(apply_auto_selection_rules(_selection_context(body)))


@app.post("/api/smart-select")
def api_smart_select(body: SelectionRequest, extractor: Extractor | None = Depends(get_extractor)):
    result = smart_select(
        _selection_context(body),
        _measurements(body.measurements),
        extractor,
        is_tear_off=body.is_tear_off,
    )
    return asdict(result)


@app.post("/api/multi-building")
def api_multi_building(body: MultiBuildingRequest):
    try:
        buildings = [Building.from_dict(b) for b in body.buildings]
        quotes = _vendor_quotes(body.vendor_quotes)
    except (KeyError, TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=[f"Invalid multi-building input: {e}"])
    c = body.customer_info
    try:
        estimate, result = calculate_multi_building_estimate(
            buildings,
            _price_items(body.price_items),
            _settings(body.settings),
            vendor_quote_items=[VendorQuoteItem.from_dict(v) for v in body.vendor_quote_items],
            vendor_quantities=body.vendor_quantities,
            vendor_adjusted_prices=body.vendor_adjusted_prices,
            labor_item_id=body.labor_item_id,
            customer_info=CustomerInfo(name=c.get("name", ""), address=c.get("address", ""),
                                       phone=c.get("phone", "")),
            vendor_quotes=quotes,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=[str(e)])
    return {"estimate": estimate.to_dict(), "result": asdict(result)}


@app.post("/api/vendor-groups")
def api_vendor_groups(body: VendorGroupRequest):
    groups = group_vendor_items(
        _vendor_quotes(body.vendor_quotes),
        [VendorQuoteItem.from_dict(v) for v in body.vendor_quote_items],
        quantities=body.quantities,
        adjusted_prices=body.adjusted_prices,
    )
    return [asdict(g) for g in groups]


# ---------------------------------------------------------------------------
# Accessories, measurements, descriptions
# ---------------------------------------------------------------------------

@app.post("/api/accessories")
def api_accessories(body: AccessoryRequest):
    m = _measurements(body.measurements)
    prices = get_accessory_prices(_price_items(body.price_items))
    return {
        "prices": prices,
        "heat_tape": asdict(calculate_heat_tape(
            m.eave_length, m.valley_length,
            prices["heat_tape_material"], prices["heat_tape_labor"])),
        "snow_guards": asdict(calculate_snow_guards(
            m.eave_length, m.predominant_pitch,
            prices["snow_guard_material"], prices["snow_guard_labor"])),
        "snow_fence": asdict(calculate_snow_fence(
            m.eave_length, m.predominant_pitch,
            prices["snow_fence_material"], prices["snow_fence_labor"])),
    }


@app.post("/api/measurements/extract")
async def api_extract_measurements(
    report: UploadFile = File(...),
    page: int = Form(1),
    extractor: Extractor | None = Depends(get_extractor),
):
    if extractor is None:
        raise HTTPException(status_code=503, detail=["Extraction service not configured (GEMINI_API_KEY)"])

    pdf_path = UPLOAD_DIR / f"{uuid4().hex}_{Path(report.filename or 'report.pdf').name}"
    with open(pdf_path, "wb") as f:
        shutil.copyfileobj(report.file, f)

    try:
        extracted = extract_summary_from_pdf(str(pdf_path), extractor, page=page)
    finally:
        pdf_path.unlink(missing_ok=True)

    if extracted is None:
        raise HTTPException(status_code=422, detail=[f"Could not read measurements from page {page}"])
    measurements, customer = extracted
    return {"measurements": asdict(measurements), "customer_info": asdict(customer)}


@app.post("/api/descriptions/generate")
def api_generate_descriptions(body: DescriptionRequest,
                              extractor: Extractor | None = Depends(get_extractor)):
    if extractor is None:
        raise HTTPException(status_code=503, detail=["Extraction service not configured (GEMINI_API_KEY)"])
    return generate_descriptions(_price_items(body.price_items), extractor)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app:app", host="127.0.0.1", port=8000, reload=True)
