"""
Configuration for the extraction pipeline.

Exchange rates and the category synonym map belong to the surrounding
application; they are passed into the pipeline explicitly and never
mutated. Defaults exist so the pipeline works out of the box.
"""

import logging
import os
import re
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Optional, Tuple

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Other"

ENV_PREFIX = "QUOTE_INGEST_"


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(ENV_PREFIX + name, default)


@dataclass(frozen=True)
class ExchangeRateTable:
    """
    Read-only exchange rates.

    usd_to_ils and eur_to_ils are shekels per one unit of the foreign
    currency. eur_to_usd is the EUR amount for one USD, which is what you get
    by dividing the two shekel rates (3.7 / 4.0 = 0.925).
    """
    usd_to_ils: Decimal = Decimal("3.7")
    eur_to_ils: Decimal = Decimal("4.0")
    eur_to_usd: Decimal = Decimal("0.925")

    def __post_init__(self):
        for name in ("usd_to_ils", "eur_to_ils", "eur_to_usd"):
            value = Decimal(str(getattr(self, name)))
            if value <= 0:
                raise ValueError(f"Exchange rate {name} must be positive, got {value}")
            # Accept floats/strings from callers but always hold Decimals
            object.__setattr__(self, name, value)

    @classmethod
    def from_rates(cls, usd_to_ils, eur_to_ils, eur_to_usd=None) -> "ExchangeRateTable":
        usd_to_ils = Decimal(str(usd_to_ils))
        eur_to_ils = Decimal(str(eur_to_ils))
        if eur_to_usd is None:
            eur_to_usd = usd_to_ils / eur_to_ils
        return cls(usd_to_ils=usd_to_ils, eur_to_ils=eur_to_ils, eur_to_usd=Decimal(str(eur_to_usd)))

    @classmethod
    def from_env(cls) -> "ExchangeRateTable":
        load_dotenv()
        defaults = cls()
        return cls.from_rates(
            _env("USD_TO_ILS", str(defaults.usd_to_ils)),
            _env("EUR_TO_ILS", str(defaults.eur_to_ils)),
            _env("EUR_TO_USD"),
        )


DEFAULT_CATEGORY_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "Controllers": ("controller", "controllers", "plc", "plcs", "hmi", "בקר", "בקרים", "בקרת"),
    "Sensors": ("sensor", "sensors", "transmitter", "encoder", "proximity", "חיישן", "חיישנים", "משדר"),
    "Actuators": ("actuator", "actuators", "valve", "valves", "cylinder", "solenoid",
                  "אקטואטור", "אקטואטורים", "שסתום", "שסתומים", "בוכנה"),
    "Motors": ("motor", "motors", "servo", "servo drive", "frequency drive", "inverter", "vfd",
               "מנוע", "מנועים", "ממיר תדר"),
    "Power Supplies": ("power supply", "power supplies", "psu", "ups", "power", "ספק כוח", "ספקי כוח", "ספק"),
    "Communication": ("communication", "network", "network switch", "ethernet switch", "router",
                      "gateway", "ethernet", "profinet", "תקשורת", "רשת"),
    "Safety": ("safety", "safety relay", "emergency stop", "light curtain", "בטיחות", "מפסק חירום"),
    "Mechanical": ("mechanical", "bracket", "enclosure", "cabinet", "din rail", "מכני", "ארון", "מתקן"),
    "Cables & Connectors": ("cable", "cables", "connector", "connectors", "wire", "terminal",
                            "כבל", "כבלים", "מחבר", "מחברים", "כבלים ומחברים"),
    DEFAULT_CATEGORY: ("other", "misc", "miscellaneous", "general", "אחר", "שונות"),
}


def _category_key(text: str) -> str:
    return re.sub(r"\s+", " ", str(text)).strip().lower()


class CategorySynonymMap:
    """
    Multilingual mapping from free-text category strings to one canonical label.

    Built once and read-only afterwards, so a single instance can be shared
    between concurrent extractions.
    """

    def __init__(self, synonyms: Optional[Dict[str, Iterable[str]]] = None, default: str = DEFAULT_CATEGORY):
        synonyms = DEFAULT_CATEGORY_SYNONYMS if synonyms is None else synonyms
        lookup: Dict[str, str] = {}
        for canonical, words in synonyms.items():
            lookup.setdefault(_category_key(canonical), canonical)
            for word in words:
                key = _category_key(word)
                if key:
                    lookup.setdefault(key, canonical)
        self.default = default
        self.canonical_labels: Tuple[str, ...] = tuple(synonyms.keys())
        self._lookup = MappingProxyType(lookup)
        # Longest phrases first so "power supply" beats "power"
        self._patterns: List[Tuple[re.Pattern, str]] = [
            (re.compile(r"(?<!\w)" + re.escape(key) + r"(?!\w)"), canonical)
            for key, canonical in sorted(lookup.items(), key=lambda item: -len(item[0]))
        ]

    def lookup(self, text: Optional[str]) -> Optional[str]:
        """Exact (trimmed, case-insensitive) match only."""
        if not text:
            return None
        return self._lookup.get(_category_key(text))

    def search(self, text: Optional[str]) -> Optional[str]:
        """Find a synonym appearing as a whole word or phrase inside `text`."""
        if not text:
            return None
        key = _category_key(text)
        for pattern, canonical in self._patterns:
            if pattern.search(key):
                return canonical
        return None

    def __contains__(self, text) -> bool:
        return self.lookup(text) is not None

    def __len__(self) -> int:
        return len(self._lookup)


@dataclass
class Settings:
    """Runtime knobs for the orchestrator and the AI vision adapter."""
    ai_model: str = "gpt-4o-mini"
    ai_timeout_seconds: float = 60.0
    ai_max_attempts: int = 3
    ai_retry_base_delay: float = 1.0
    # Re-route text PDFs that yield nothing to the AI adapter (when one is configured)
    ai_fallback: bool = False
    max_file_size_mb: int = 50
    log_level: str = "INFO"

    def __post_init__(self):
        if self.ai_timeout_seconds <= 0:
            raise ValueError(f"AI timeout must be positive, got {self.ai_timeout_seconds}")
        if self.ai_max_attempts < 1:
            raise ValueError(f"AI attempts must be at least 1, got {self.ai_max_attempts}")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        defaults = cls()
        return cls(
            ai_model=_env("AI_MODEL", defaults.ai_model),
            ai_timeout_seconds=float(_env("AI_TIMEOUT_SECONDS", str(defaults.ai_timeout_seconds))),
            ai_max_attempts=int(_env("AI_MAX_ATTEMPTS", str(defaults.ai_max_attempts))),
            ai_retry_base_delay=float(_env("AI_RETRY_BASE_DELAY", str(defaults.ai_retry_base_delay))),
            ai_fallback=_env("AI_FALLBACK", "false").strip().lower() in ("1", "true", "yes", "on"),
            max_file_size_mb=int(_env("MAX_FILE_SIZE_MB", str(defaults.max_file_size_mb))),
            log_level=_env("LOG_LEVEL", defaults.log_level),
        )
