"""Image generation tool."""

from ravenmind.image.service import STYLE_PRESETS
from ravenmind.tools.base import Attachment, ToolContext, ToolResult
from ravenmind.tools.registry import tool

GENERATE_IMAGE_TOOL = "generate_image"


@tool(
    description=(
        "Generate an image from a text description. Use this when the user asks for "
        "image creation, artwork, or visual content. Styles: " + ", ".join(STYLE_PRESETS)
    )
)
async def generate_image(ctx: ToolContext, prompt: str, style: str | None = None) -> ToolResult:
    """Generate an image and attach it to the reply.

    Args:
        prompt: Detailed description of the image to generate
        style: Optional style preset
    """
    if ctx.images is None:
        return ToolResult.fail("Image generation is not available.")

    result = await ctx.images.generate_image(prompt, ctx.user_id, style)
    if not result.success or result.image is None:
        return ToolResult.fail(result.error or "Image generation failed")

    return ToolResult.ok(
        "Image generated successfully and attached to the response.",
        attachment=Attachment(data=result.image, filename=result.filename or "image.png"),
    )
