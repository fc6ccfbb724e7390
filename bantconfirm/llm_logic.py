# Filename: bantconfirm/llm_logic.py
# Lead qualification: free-text requirement -> BANT fields + category + summary.
#  - OpenAIQualifier asks the model for strict JSON matching the BANT shape.
#  - KeywordQualifier is the degraded mode: ordered keyword table, no network.
#  - Both expose `qualify(text) -> BANTResult`; build_qualifier() picks one at startup.

from __future__ import annotations

import json
import logging
import re
import time
from typing import Optional, Protocol

from decouple import config
from openai import OpenAI, OpenAIError
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from bantconfirm.errors import QualificationError, ValidationError
from bantconfirm.models import ProductCategory

logger = logging.getLogger(__name__)

OPENAI_API_KEY = config("OPENAI_API_KEY", default="")
OPENAI_MODEL = config("OPENAI_MODEL", default="gpt-4o-mini")
OPENAI_TIMEOUT = config("OPENAI_TIMEOUT", cast=float, default=30.0)
LEAD_QUALIFIER = config("LEAD_QUALIFIER", default="openai")

NOT_SPECIFIED = "Not specified"
MAX_INPUT_LEN = 4000

_OPENAI_MAX_TOKENS = 600
_OPENAI_TEMP = 0.2

_SYS_PROMPT_BANT = (
    "You are an expert sales qualifier for an IT and telecom services marketplace. "
    "Extract the BANT parameters (Budget, Authority, Need, Timeframe) from the buyer's requirement. "
    "If a parameter is not stated, infer it reasonably or answer exactly 'Not specified'. "
    "Pick the most specific IT category that fits (for example 'Cloud Storage', 'SIP Trunk', "
    "'CRM Software', 'Managed Firewall'); you are not limited to a fixed list. "
    "Write a short professional summary a vendor can act on. Reply with JSON only."
)

_FIELDS = ("budget", "authority", "need", "timeframe", "summary", "category")

_BANT_SCHEMA = {
    "type": "object",
    "properties": {
        "budget": {"type": "string", "description": "The budget mentioned or implied"},
        "authority": {"type": "string", "description": "The decision making power of the user"},
        "need": {"type": "string", "description": "The specific technical or business requirement"},
        "timeframe": {"type": "string", "description": "When they need this implemented"},
        "summary": {"type": "string", "description": "A professional summary of the enquiry"},
        "category": {"type": "string", "description": "The most relevant IT category"},
    },
    "required": list(_FIELDS),
    "additionalProperties": False,
}


class BANTResult(BaseModel):
    budget: str
    authority: str
    need: str
    timeframe: str
    summary: str
    category: str


class LeadQualifier(Protocol):
    name: str

    def qualify(self, text: str) -> BANTResult: ...


def prepare_input(text: Optional[str], limit: int = MAX_INPUT_LEN) -> str:
    """Strip and cap the requirement text; blank input never reaches a qualifier backend."""
    t = (text or "").strip()
    if not t:
        raise ValidationError("Requirement text must not be empty")
    return t if len(t) <= limit else t[:limit]


def _fill_blanks(result: BANTResult) -> BANTResult:
    data = result.model_dump()
    for key in _FIELDS:
        if not data[key].strip():
            data[key] = ProductCategory.CUSTOM_REQUIREMENT.value if key == "category" else NOT_SPECIFIED
        else:
            data[key] = data[key].strip()
    return BANTResult(**data)


def _parse_strict_json(raw: str) -> BANTResult:
    """Strip possible code fences / 'json' prefix and enforce the six-field shape."""
    s = (raw or "").strip().strip("` \n")
    if s.lower().startswith("json"):
        s = s[4:].lstrip(":").strip()
    data = json.loads(s)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return _fill_blanks(BANTResult.model_validate(data))


class OpenAIQualifier:
    """Delegated inference through the OpenAI chat completions API."""

    name = "openai"

    def __init__(self, client=None, *, api_key: str = OPENAI_API_KEY, model: str = OPENAI_MODEL,
                 timeout: float = OPENAI_TIMEOUT, max_retries: int = 2, backoff: float = 1.0):
        self.model = model
        self.max_retries = max_retries
        self.backoff = backoff
        if client is None and api_key:
            # retries are done by qualify()
            client = OpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._client = client

    def _call(self, text: str):
        return self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": _SYS_PROMPT_BANT},
                {"role": "user", "content": text},
            ],
            response_format={
                "type": "json_schema",
                "json_schema": {"name": "bant_result", "strict": True, "schema": _BANT_SCHEMA},
            },
            max_tokens=_OPENAI_MAX_TOKENS,
            temperature=_OPENAI_TEMP,
        )

    def qualify(self, text: str) -> BANTResult:
        """
        One request per attempt.
        - API errors, timeouts and malformed replies are retried with exponential backoff
        - After the last attempt the failure surfaces as QualificationError
        """
        text = prepare_input(text)
        if self._client is None:
            raise QualificationError("AI qualification is not configured (missing OPENAI_API_KEY)")

        last_err: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                completion = self._call(text)
                raw = (completion.choices[0].message.content or "").strip()
                if not raw:
                    raise ValueError("empty completion")
                result = _parse_strict_json(raw)
                logger.info(f"[BANT OK] category={result.category!r} attempt={attempt}")
                return result
            except (OpenAIError, SchemaError, ValueError, IndexError, AttributeError) as e:
                # json.JSONDecodeError is a ValueError
                logger.warning(f"[BANT attempt {attempt} failed] {type(e).__name__}: {e}")
                last_err = e
            if attempt < self.max_retries:
                time.sleep(self.backoff * 2 ** (attempt - 1))

        logger.error(f"[BANT FAILED] giving up after {self.max_retries} attempts. last_err={last_err}")
        raise QualificationError("Failed to analyze requirement. Please try again.") from last_err


# Keep specific phrases ahead of generic ones; the first matching row wins.
_CATEGORY_KEYWORDS = [
    ("crm", ProductCategory.CRM_SOFTWARE),
    ("whatsapp", ProductCategory.WHATSAPP_API),
    ("cloud", ProductCategory.CLOUD_STORAGE),
    ("storage", ProductCategory.CLOUD_STORAGE),
    ("backup", ProductCategory.CLOUD_STORAGE),
    ("sip", ProductCategory.SIP_TRUNK),
    ("trunk", ProductCategory.SIP_TRUNK),
    ("leased line", ProductCategory.INTERNET_LEASED_LINE),
    ("lease line", ProductCategory.INTERNET_LEASED_LINE),
    ("internet", ProductCategory.INTERNET_LEASED_LINE),
    ("bandwidth", ProductCategory.INTERNET_LEASED_LINE),
    ("cybersecurity", ProductCategory.CYBERSECURITY),
    ("security", ProductCategory.CYBERSECURITY),
    ("firewall", ProductCategory.CYBERSECURITY),
    ("it support", ProductCategory.IT_SUPPORT),
    ("helpdesk", ProductCategory.IT_SUPPORT),
    ("support", ProductCategory.IT_SUPPORT),
    ("voice", ProductCategory.VOICE_SOLUTIONS),
    ("pbx", ProductCategory.VOICE_SOLUTIONS),
]
_KEYWORD_PATTERNS = [
    # plural forms count: "CRMs", "backups", "firewalls"
    (re.compile(r"\b" + re.escape(kw) + r"(?:e?s)?\b", re.IGNORECASE), category)
    for kw, category in _CATEGORY_KEYWORDS
]

FALLBACK_BUDGET = "To be discussed with vendor"
FALLBACK_AUTHORITY = "To be confirmed"
FALLBACK_TIMEFRAME = "To be determined"
NEED_ECHO_LEN = 50


def match_category(text: str) -> str:
    for pattern, category in _KEYWORD_PATTERNS:
        if pattern.search(text):
            return category.value
    return ProductCategory.CUSTOM_REQUIREMENT.value


class KeywordQualifier:
    """Degraded mode: deterministic, offline, and honest about it in the summary."""

    name = "keyword"

    def qualify(self, text: str) -> BANTResult:
        text = prepare_input(text)
        category = match_category(text)
        need = text if len(text) <= NEED_ECHO_LEN else text[:NEED_ECHO_LEN] + "..."
        summary = (
            f"Manual review mode: AI qualification is disabled, so this enquiry was filed under "
            f"'{category}' by keyword matching. A team member will confirm budget, authority and timeframe."
        )
        return BANTResult(
            budget=FALLBACK_BUDGET,
            authority=FALLBACK_AUTHORITY,
            need=need,
            timeframe=FALLBACK_TIMEFRAME,
            summary=summary,
            category=category,
        )


def build_qualifier(name: Optional[str] = None, **kwargs) -> LeadQualifier:
    """Resolve the configured strategy once; unknown names fail at startup."""
    name = (name or LEAD_QUALIFIER).strip().lower()
    if name == "openai":
        q = OpenAIQualifier(**kwargs)
        if q._client is None:
            logger.warning("LEAD_QUALIFIER=openai but OPENAI_API_KEY is empty; qualification requests will fail.")
        return q
    if name == "keyword":
        logger.info("Lead qualifier running in keyword (degraded) mode.")
        return KeywordQualifier()
    raise ValueError(f"Unknown LEAD_QUALIFIER {name!r}; expected 'openai' or 'keyword'")
