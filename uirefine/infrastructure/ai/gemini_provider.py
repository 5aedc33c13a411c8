import base64
import logging
from typing import Any, List, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions

from ...core.config import settings
from ...application.ports.ai_provider import AIProvider, ContentPart, ImagePart, TextPart
from ...exceptions import (
    AuthError,
    ConfigError,
    EmptyResponseError,
    NetworkError,
    ProviderError,
    ProviderFailure,
)

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "Gemini API Key is not configured. Please set the GEMINI_API_KEY environment variable "
    "(e.g. GEMINI_API_KEY=YOUR_KEY_HERE in your .env file) and restart the service."
)
INVALID_KEY_MESSAGE = (
    "Gemini API Key is invalid. Please check GEMINI_API_KEY in your .env file and restart the service."
)
EMPTY_RESPONSE_MESSAGE = "Received an empty response from Gemini API."

_NETWORK_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.RetryError,
    # socket, DNS and HTTP transport failures (requests errors subclass OSError)
    OSError,
)


def classify_error(exc: Exception) -> ProviderFailure:
    """Map an SDK or transport exception onto one of the provider failure kinds."""
    message = str(exc) or exc.__class__.__name__
    lowered = message.lower()
    if "api key not valid" in lowered or "api_key_invalid" in lowered:
        return AuthError(INVALID_KEY_MESSAGE)
    if isinstance(exc, (google_exceptions.Unauthenticated, google_exceptions.PermissionDenied)):
        return AuthError(INVALID_KEY_MESSAGE)
    if isinstance(exc, _NETWORK_ERRORS):
        return NetworkError(
            "Network error while contacting Gemini API. Please check your internet connection "
            f"and API endpoint. Details: {message}"
        )
    if "model" in lowered and "not found" in lowered:
        return ProviderError(f"The Gemini model specified is not found or not available. Details: {message}")
    return ProviderError(f"Failed to get analysis from Gemini: {message}")


def to_contents(parts: Sequence[ContentPart]) -> List[Any]:
    contents: List[Any] = []
    for part in parts:
        if isinstance(part, ImagePart):
            contents.append({"mime_type": part.mime_type, "data": base64.b64decode(part.data)})
        elif isinstance(part, TextPart):
            contents.append(part.text)
        else:
            raise TypeError(f"Unsupported content part: {part!r}")
    return contents


def response_text(result: Any) -> Optional[str]:
    # .text raises ValueError when the candidate has no text parts (e.g. blocked)
    try:
        return result.text
    except (AttributeError, ValueError) as e:
        logger.warning(f"Gemini response carried no text: {e}")
        return None


class GeminiProvider(AIProvider):
    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None) -> None:
        self.api_key = settings.GEMINI_API_KEY if api_key is None else api_key
        self.model_name = model_name or settings.GEMINI_MODEL
        self._model = None

    def configured(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def _get_model(self):
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def generate_report(self, parts: Sequence[ContentPart]) -> str:
        if not self.configured():
            logger.error("Gemini API Key (GEMINI_API_KEY) is not configured.")
            raise ConfigError(MISSING_KEY_MESSAGE)

        contents = to_contents(parts)
        try:
            result = self._get_model().generate_content(contents)
        except Exception as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise classify_error(e) from e

        text = response_text(result)
        if not text:
            raise EmptyResponseError(EMPTY_RESPONSE_MESSAGE)
        return text
