"""Image generation tool: Stability AI SDXL text-to-image.

Only runs when the model explicitly asks for it; never triggered per query.
"""
import logging

import httpx

from ..registry import register_tool, ToolContext, ToolOutcome, ToolParam

logger = logging.getLogger(__name__)

STABILITY_URL = "https://api.stability.ai/v1/generation/stable-diffusion-xl-1024-v1-0/text-to-image"


@register_tool(
    "generate_image_tool",
    description=(
        "Generates an AI-powered infographic image from a detailed prompt. Use this only when the "
        "user explicitly asks for an 'image', 'picture', 'infographic' or 'visual representation' "
        "of market insights."
    ),
    params=[
        ToolParam("prompt", description=(
            "A detailed description of the desired visual content for financial market insights."
        )),
    ],
)
async def generate_image_tool(prompt: str, ctx: ToolContext, **kwargs) -> ToolOutcome:
    api_key = ctx.settings.stability_api_key
    if not api_key:
        logger.error("[Stability AI] API key not set.")
        return ToolOutcome.fail("Stability AI API key not found.", detail="STABILITY_AI_API_KEY is empty")

    logger.info(f"[Stability AI] Generating image for prompt: '{prompt[:50]}...'")
    try:
        resp = await ctx.http.post(
            STABILITY_URL,
            headers={
                "Accept": "application/json",
                "Authorization": f"Bearer {api_key}",
            },
            json={
                "steps": 40,
                "width": 1024,
                "height": 1024,
                "seed": 0,
                "cfg_scale": 7.0,
                "samples": 1,
                "text_prompts": [{"text": prompt, "weight": 1}],
            },
            timeout=60,
        )
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"[Stability AI] Error generating image: {e}")
        return ToolOutcome.fail("Failed to generate image.", detail=str(e))

    artifacts = data.get("artifacts") if isinstance(data, dict) else None
    encoded = artifacts[0].get("base64") if artifacts and isinstance(artifacts[0], dict) else None
    if not encoded:
        logger.error("[Stability AI] No image artifacts found in response")
        return ToolOutcome.fail("Failed to generate image.", detail="response had no artifacts")

    logger.info("[Stability AI] Image generated successfully.")
    return ToolOutcome.ok({"imageUrl": f"data:image/png;base64,{encoded}"})
