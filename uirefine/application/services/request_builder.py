import logging
from typing import List, Optional

from ..ports.ai_provider import ContentPart, ImagePart, TextPart
from ...exceptions import EncodingError, FormatError, ValidationError
from ...media_utils import encode, extract_payload
from ...schemas.analysis.analysis import AnalysisRecord

logger = logging.getLogger(__name__)

MISSING_SCREENSHOT_MESSAGE = (
    "Screenshot data is missing or invalid. Please ensure a valid screenshot was uploaded."
)

DESIGN_REVIEW_SECTIONS = """
1.  **Overall UI/UX Impression**:
    *   First glance thoughts.
    *   Clarity of purpose and primary actions.
    *   Visual appeal and coherence.

2.  **Layout and Composition**:
    *   Balance and alignment of elements.
    *   Visual hierarchy (are important elements prominent?).
    *   Use of whitespace and spacing.
    *   Responsiveness considerations (potential issues on different screen sizes based on the visual).

3.  **Visual Design**:
    *   Color palette (effectiveness, contrast, accessibility).
    *   Typography (readability, hierarchy, consistency).
    *   Iconography and imagery (clarity, relevance).

4.  **Usability and Interaction**:
    *   Intuitiveness of navigation and controls.
    *   Clarity of calls to action.
    *   Feedback mechanisms (if discernible).
    *   Potential friction points for users.

5.  **Accessibility (Visual)**:
    *   Sufficient color contrast for text and interactive elements.
    *   Legibility of font sizes.
    *   Adequate touch target sizes for interactive elements (if applicable).
"""

CODE_REVIEW_SECTIONS = """
6.  **Code Review ({language})**:
    *   Code Structure and Readability: Is it well-organized, easy to understand?
    *   React/Tailwind Best Practices (if TSX/JSX with Tailwind): Component design, props, state, utility class usage.
    *   Efficiency and Potential Issues: Any obvious performance concerns or anti-patterns?
    *   Semantic HTML (if applicable).
    *   How well does the code seem to implement the visual design?

7.  **Actionable Improvement Suggestions**:
    *   Provide specific, concrete recommendations for UI/UX enhancements.
    *   Suggest Tailwind CSS classes or structural changes if applicable.
    *   If code was provided, offer refactoring ideas or specific code improvements.
    *   Prioritize suggestions by impact.
"""

SUGGESTIONS_ONLY_SECTION = """
6.  **Actionable Improvement Suggestions**:
    *   Provide specific, concrete recommendations for UI/UX enhancements.
    *   Suggest Tailwind CSS classes or structural changes if applicable for layout, spacing, typography, colors.
    *   Prioritize suggestions by impact.
"""


def build_prompt(
    screen_name: Optional[str] = None,
    url: Optional[str] = None,
    code_snippet: Optional[str] = None,
    code_language: Optional[str] = None,
) -> str:
    """Instruction text for a design review, plus a code review when a snippet is given."""
    has_code = bool(code_snippet)
    subject = "the provided UI screenshot" + (" AND the accompanying code snippet" if has_code else "")
    closing = CODE_REVIEW_SECTIONS.format(language=code_language or "N/A") if has_code else SUGGESTIONS_ONLY_SECTION
    return (
        "You are an expert UI/UX designer and frontend developer.\n"
        f"Analyze {subject}.\n"
        f'Screen Name: "{screen_name or "N/A"}"\n'
        f'Intended URL: "{url or "N/A"}"\n'
        "\n"
        "Please provide a comprehensive review in Markdown format. "
        f"If code is provided, assume it's {code_language or 'related to the UI'}.\n"
        "\n"
        "Your analysis should cover the following aspects:\n"
        f"{DESIGN_REVIEW_SECTIONS}{closing}\n"
        "Format your response clearly using Markdown headings, bullet points, and code blocks "
        "(for Tailwind class suggestions or code examples, use ```css or ```tsx). "
        "Be constructive and detailed.\n"
    )


def build_code_part(code_snippet: str, code_language: Optional[str] = None) -> str:
    return (
        f"\n\nCode Snippet ({code_language or 'N/A'}):\n"
        f"```{code_language or 'plaintext'}\n{code_snippet}\n```"
    )


def screenshot_payload(record: AnalysisRecord) -> ImagePart:
    """Image payload for a record, taken from its preview data URL.

    A record created in this session may still hold the raw upload; it is only
    used when no preview was stored.
    """
    data_url = record.screenshot_preview
    if not data_url and record.screenshot_binary is not None:
        try:
            data_url = encode(record.screenshot_binary)
        except EncodingError as e:
            raise ValidationError(f"{MISSING_SCREENSHOT_MESSAGE} ({e.message})") from e
    if not data_url:
        raise ValidationError(MISSING_SCREENSHOT_MESSAGE)
    try:
        payload, mime_type = extract_payload(data_url)
    except FormatError as e:
        logger.warning(f"Screenshot preview for analysis {record.id} is not a valid base64 data URL")
        raise ValidationError(f"Screenshot preview is corrupt: {e.message}") from e
    return ImagePart(mime_type=mime_type, data=payload)


def build_parts(record: AnalysisRecord) -> List[ContentPart]:
    """Ordered parts for the provider: instructions, image, then code when present."""
    image = screenshot_payload(record)
    parts: List[ContentPart] = [
        TextPart(build_prompt(record.screen_name, record.url, record.code_snippet, record.code_language)),
        image,
    ]
    if record.code_snippet:
        parts.append(TextPart(build_code_part(record.code_snippet, record.code_language)))
    return parts
