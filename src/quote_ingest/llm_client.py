"""
OpenAI-backed vision extraction service.

Sends the document (image, or PDF as a file part) to a chat-completions
model and returns the decoded JSON reply:

    {"components": [...], "metadata": {...}}

Credentials (OPENAI_API_KEY) are read from the environment via dotenv.
"""

import base64
import json
import logging
import re
from typing import Any, Dict, Iterable, Optional

import openai
from dotenv import load_dotenv
from openai import AsyncOpenAI

from .config import DEFAULT_CATEGORY_SYNONYMS
from .exceptions import ExternalServiceFailure, MalformedSourceData, TransientServiceError

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are a data extraction specialist for supplier quotations and price lists.

Extract every quoted component from the attached document. The document may be in
Hebrew, English or both.

Part numbers are left-to-right strings: copy them exactly as they appear, character
by character, in the same order. Never reorder, truncate or strip characters.
Use the part-number column (מק"ט, מקט, קטלוגי, P/N, Part Number, Cat No) only for
manufacturerPN and the description/product column for name.

Categories (use exactly one of these labels, or null):
{categories}

Reply with JSON only, in this shape:
{{
  "metadata": {{
    "supplier": "supplier name or null",
    "quoteDate": "YYYY-MM-DD or null",
    "currency": "NIS" | "USD" | "EUR" | null,
    "isRTLDocument": true | false
  }},
  "components": [
    {{
      "name": "short descriptive name",
      "description": "description or null",
      "manufacturer": "manufacturer or null",
      "manufacturerPN": "part number or null",
      "category": "category label or null",
      "supplier": "supplier or null",
      "quantity": number or null,
      "unitPriceNIS": number or null,
      "unitPriceUSD": number or null,
      "unitPriceEUR": number or null,
      "currency": "NIS" | "USD" | "EUR" | null,
      "notes": "notes or null",
      "confidence": number between 0 and 1
    }}
  ]
}}"""

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def to_data_url(content: bytes, mime_type: str) -> str:
    b64 = base64.b64encode(content).decode("ascii")
    return f"data:{mime_type};base64,{b64}"


def build_prompt(categories: Iterable[str]) -> str:
    return EXTRACTION_PROMPT.format(categories="\n".join(f"- {label}" for label in categories))


def _content_node(content: bytes, mime_type: str, filename: str) -> Dict[str, Any]:
    data_url = to_data_url(content, mime_type)
    if mime_type.startswith("image/"):
        return {"type": "image_url", "image_url": {"url": data_url}}
    return {"type": "file", "file": {"filename": filename or "document.pdf", "file_data": data_url}}


def parse_llm_response(text: Optional[str]) -> Dict[str, Any]:
    """
    Decode the model's JSON reply, tolerating markdown code fences.

    Raises:
        MalformedSourceData: If the reply is empty, not JSON, or not an object
    """
    if not text or not text.strip():
        raise MalformedSourceData("The AI service returned an empty response.")

    cleaned = _FENCE.sub("", text.strip())
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON from AI service: {e}")
        raise MalformedSourceData(
            "The AI service returned a response that is not valid JSON. Try again or use a clearer image."
        ) from e

    if not isinstance(data, dict):
        raise MalformedSourceData("The AI service response has an unexpected structure.")
    return data


class OpenAIVisionService:
    """VisionExtractionService backed by the OpenAI chat-completions API."""

    def __init__(self, model: str = "gpt-4o-mini", client: Optional[AsyncOpenAI] = None,
                 categories: Optional[Iterable[str]] = None):
        if client is None:
            load_dotenv()
            client = AsyncOpenAI()
        self.client = client
        self.model = model
        self.prompt = build_prompt(categories or DEFAULT_CATEGORY_SYNONYMS.keys())

    async def extract(self, content: bytes, mime_type: str, filename: str) -> Dict[str, Any]:
        messages = [{
            "role": "user",
            "content": [
                {"type": "text", "text": self.prompt},
                _content_node(content, mime_type, filename),
            ],
        }]

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0,
                response_format={"type": "json_object"},
            )
        except (openai.RateLimitError, openai.APIConnectionError, openai.InternalServerError) as e:
            logger.warning(f"AI service error (will retry): {e}")
            raise TransientServiceError(f"The AI service is temporarily unavailable: {e}") from e
        except openai.APIError as e:
            logger.error(f"AI service request failed: {e}")
            raise ExternalServiceFailure(f"The AI service rejected the request: {e}") from e

        if not response.choices:
            raise MalformedSourceData("The AI service returned no choices.")
        return parse_llm_response(response.choices[0].message.content)
