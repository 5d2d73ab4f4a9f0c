"""
Text/vision extraction collaborator.

The engine only sees a function shape:

    Extractor = Callable[[prompt, optional PIL image, max_tokens], str]

GeminiExtractor is the production implementation (google-genai). Every
caller parses the returned text with extract_json() and validates it
before use; each call site owns its fallback when the call raises.

Environment:
    GEMINI_API_KEY   - Google Gemini API key
    ESTIMATOR_MODEL  - model name (default gemini-2.5-flash)
"""

import io
import logging
import time
from typing import Callable, Optional

import pypdfium2 as pdfium
from google import genai
from google.genai import types
from PIL import Image

from estimate_engine import config

logger = logging.getLogger(__name__)

RENDER_SCALE = 2  # ~144 DPI for report pages
DEFAULT_RETRIES = 3

Extractor = Callable[[str, Optional[Image.Image], int], str]


class ExtractorUnavailable(RuntimeError):
    """Raised when no API key is configured."""


# ---------------------------------------------------------------------------
# PDF page rendering
# ---------------------------------------------------------------------------

def render_pdf_pages(pdf_path: str,
                     pages: list[int] | None = None,
                     scale: int = RENDER_SCALE) -> list[tuple[int, Image.Image]]:
    """
    Render PDF pages to PIL Images.

    Args:
        pdf_path: Path to PDF file.
        pages: 1-indexed page numbers to render. None = all pages.
        scale: Render scale (2 = ~144 DPI).

    Returns:
        List of (page_number, PIL.Image) tuples. Out-of-range pages are skipped.
    """
    doc = pdfium.PdfDocument(pdf_path)
    try:
        total = len(doc)
        indices = [p - 1 for p in pages] if pages else list(range(total))
        results = []
        for idx in indices:
            if idx < 0 or idx >= total:
                logger.warning(f"Page {idx + 1} out of range (PDF has {total} pages), skipping")
                continue
            bitmap = doc[idx].render(scale=scale)
            results.append((idx + 1, bitmap.to_pil()))
        return results
    finally:
        doc.close()


def _image_to_part(img: Image.Image) -> types.Part:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return types.Part.from_bytes(data=buf.getvalue(), mime_type="image/png")


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def extract_json(text: str) -> str:
    """Pull the JSON payload out of a model response, handling markdown code fences."""
    if "```json" in text:
        start = text.index("```json") + 7
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    if "```" in text:
        start = text.index("```") + 3
        end = text.find("```", start)
        return text[start:end if end != -1 else None].strip()
    first = text.find("{")
    last = text.rfind("}")
    if first != -1 and last > first:
        return text[first:last + 1]
    return text.strip()


# ---------------------------------------------------------------------------
# Gemini implementation
# ---------------------------------------------------------------------------

class GeminiExtractor:
    """Callable Extractor backed by Gemini generate_content with retry/backoff."""

    def __init__(self, client: genai.Client | None = None,
                 model: str = config.DEFAULT_MODEL,
                 retries: int = DEFAULT_RETRIES):
        if client is None:
            if not config.GEMINI_API_KEY:
                raise ExtractorUnavailable("GEMINI_API_KEY is not configured")
            client = genai.Client(api_key=config.GEMINI_API_KEY)
        self.client = client
        self.model = model
        self.retries = retries

    def __call__(self, prompt: str, image: Image.Image | None = None, max_tokens: int = 2000) -> str:
        contents = [_image_to_part(image), prompt] if image is not None else [prompt]
        cfg = types.GenerateContentConfig(max_output_tokens=max_tokens)

        for attempt in range(self.retries):
            t0 = time.time()
            try:
                logger.info(f"  Gemini API call attempt {attempt + 1}/{self.retries} (model={self.model})...")
                response = self.client.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=cfg,
                )
                elapsed = time.time() - t0
                logger.info(f"  Gemini API responded in {elapsed:.1f}s ({len(response.text or '')} chars)")
                return response.text or ""
            except Exception as e:
                elapsed = time.time() - t0
                if attempt < self.retries - 1:
                    wait = 2 ** (attempt + 1)
                    logger.warning(f"  Gemini API error after {elapsed:.1f}s (attempt {attempt + 1}): {type(e).__name__}: {e}")
                    logger.info(f"  Retrying in {wait}s...")
                    time.sleep(wait)
                else:
                    logger.error(f"  Gemini API failed after {self.retries} attempts: {type(e).__name__}: {e}")
                    raise
        raise RuntimeError("Gemini API failed")


def default_extractor() -> Extractor | None:
    """The configured production extractor, or None when no API key is set."""
    try:
        return GeminiExtractor()
    except ExtractorUnavailable as e:
        logger.warning(f"Extraction service unavailable: {e}")
        return None
