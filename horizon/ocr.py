"""OCR executor: text extraction from an uploaded image via OCR.space."""
import base64
import logging

import httpx

from .tools.registry import ToolContext, ToolOutcome

logger = logging.getLogger(__name__)

OCR_SPACE_URL = "https://api.ocr.space/parse/image"


async def perform_ocr(ctx: ToolContext, image: bytes, content_type: str = "image/png") -> ToolOutcome:
    api_key = ctx.settings.ocr_space_api_key
    if not api_key:
        logger.error("[OCR.space] API key not set.")
        return ToolOutcome.fail("OCR.space API key not found.", detail="OCR_SPACE_API_KEY is empty")
    if not image:
        return ToolOutcome.fail("Uploaded image is empty.", detail="zero-byte upload")

    encoded = base64.b64encode(image).decode("ascii")
    try:
        resp = await ctx.http.post(
            OCR_SPACE_URL,
            headers={"apikey": api_key},
            data={
                "base64Image": f"data:{content_type};base64,{encoded}",
                "language": "eng",
                "isOverlayRequired": "false",
            },
            timeout=30,
        )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[OCR.space] Error performing OCR: {e}")
        return ToolOutcome.fail("Failed to perform OCR. Please check the image and API key.", detail=str(e))

    if not isinstance(data, dict):
        return ToolOutcome.fail("Could not extract text from image.", detail=str(data)[:200])

    if data.get("IsErroredOnProcessing"):
        message = data.get("ErrorMessage")
        if isinstance(message, list):
            message = "; ".join(str(m) for m in message)
        logger.error(f"[OCR.space] Error processing image: {message}")
        return ToolOutcome.fail(f"OCR processing failed: {message}", detail=str(message))

    results = data.get("ParsedResults") or []
    text = "\n".join(r.get("ParsedText", "") for r in results if isinstance(r, dict)).strip()
    if not text:
        logger.warning("[OCR.space] No text found in image")
        return ToolOutcome.fail("Could not extract text from image. No parsed results.",
                                detail=str(data)[:200])

    logger.info("[OCR] Text extracted successfully.")
    return ToolOutcome.ok({"extractedText": text})
