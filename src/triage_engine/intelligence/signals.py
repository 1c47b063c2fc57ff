"""Signal extraction: entities, risk flags and sentiment word counts."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime

from triage_engine.core.models import (
    EmailContent,
    ExtractedEntities,
    RiskFlags,
    SenderType,
    SentimentAnalysis,
    SentimentLabel,
    Signals,
)

_HASH_ORDER_PATTERN = re.compile(r"#(\d{4,})")
_WORDED_ORDER_PATTERN = re.compile(
    r"\border\s*(?:number|no\.?|#|id)?\s*:?\s*#?(\d{4,})", re.IGNORECASE
)
_NAME_PATTERN = re.compile(
    r"(?i:\bmy name is|\bi'm|\bi am)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){0,2})"
)
_MONEY_PATTERN = re.compile(
    r"[£$€]\s*\d+(?:,\d{3})*(?:\.\d{1,2})?"
    r"|\d+(?:,\d{3})*(?:\.\d{1,2})?\s*(?:pounds|dollars|euros|gbp|usd|eur)\b",
    re.IGNORECASE,
)
_MONTHS = (
    "jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?"
    "|sep(?:tember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?"
)
_DATE_PATTERN = re.compile(
    r"\b(?:\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"
    rf"|\d{{1,2}}(?:st|nd|rd|th)?\s+(?:{_MONTHS})\.?,?\s+\d{{2,4}}"
    rf"|(?:{_MONTHS})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?(?:,?\s+\d{{4}})?)\b",
    re.IGNORECASE,
)
_ADDRESS_PATTERNS = (
    re.compile(
        r"\d+\s+[A-Z][a-z]+\s+(?:street|st|road|rd|avenue|ave|lane|ln|drive|dr)\b",
        re.IGNORECASE,
    ),
    re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}\b", re.IGNORECASE),
    re.compile(r"postcode|postal code|zip code", re.IGNORECASE),
)

LEGAL_KEYWORDS = (
    "lawyer",
    "attorney",
    "legal action",
    "court",
    "solicitor",
    "lawsuit",
    "sue you",
    "small claims",
)
CHARGEBACK_KEYWORDS = (
    "chargeback",
    "charge back",
    "bank dispute",
    "credit card dispute",
    "dispute the charge",
    "dispute the payment",
)
NEGATIVE_REVIEW_KEYWORDS = (
    "bad review",
    "negative review",
    "1 star",
    "one star",
    "trustpilot",
    "tell everyone",
    "warn others",
    "post on social media",
    "posting on facebook",
)
REFUND_KEYWORDS = (
    "refund",
    "money back",
    "return my money",
    "want my money",
    "give me back",
    "reimbursement",
    "compensation",
)

NEGATIVE_WORDS = (
    "angry",
    "furious",
    "disgusted",
    "broken",
    "damaged",
    "unacceptable",
    "terrible",
    "awful",
    "horrible",
    "disappointed",
    "useless",
    "appalling",
    "disgraceful",
)
POSITIVE_WORDS = (
    "thank",
    "great",
    "excellent",
    "happy",
    "pleased",
    "wonderful",
    "amazing",
    "love",
    "brilliant",
    "fantastic",
    "perfect",
)
_EMOTION_KEYWORDS: dict[str, tuple[str, ...]] = {
    "angry": ("angry", "furious", "livid", "outraged", "disgusted"),
    "frustrated": ("frustrated", "fed up", "annoyed", "ridiculous", "unacceptable"),
    "disappointed": ("disappointed", "let down"),
    "upset": ("upset", "unhappy"),
    "concerned": ("concerned", "concern"),
    "worried": ("worried", "anxious"),
    "confused": ("confused", "confusing", "unclear", "don't understand"),
    "grateful": ("thank", "grateful", "appreciate"),
}

_SENTIMENT_SCORES: dict[SentimentLabel, float] = {
    "very_negative": -0.9,
    "negative": -0.5,
    "neutral": 0.0,
    "positive": 0.5,
    "very_positive": 0.9,
}


def contains_any(keywords: Iterable[str], haystack: str) -> bool:
    """Return ``True`` when any keyword is a substring of ``haystack``."""
    return any(keyword in haystack for keyword in keywords)


def count_matches(keywords: Iterable[str], haystack: str) -> int:
    """Count the keywords that occur in ``haystack``."""
    return sum(1 for keyword in keywords if keyword in haystack)


def extract_order_id(text: str, prefixes: Sequence[str] = ()) -> str | None:
    """Return the first order id found; patterns are tried in a fixed order."""
    for pattern in _order_patterns(prefixes):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _order_patterns(prefixes: Sequence[str]) -> list[re.Pattern[str]]:
    patterns = [_HASH_ORDER_PATTERN, _WORDED_ORDER_PATTERN]
    if prefixes:
        joined = "|".join(re.escape(prefix) for prefix in prefixes)
        patterns.append(
            re.compile(rf"\b((?:{joined})[-\s]?\d{{5}})\b", re.IGNORECASE)
        )
    return patterns


def extract_entities(text: str, prefixes: Sequence[str] = ()) -> ExtractedEntities:
    """Extract order id, name, amounts, dates and an address hint from text."""
    name_match = _NAME_PATTERN.search(text)
    return ExtractedEntities(
        order_id=extract_order_id(text, prefixes),
        customer_name=name_match.group(1) if name_match else None,
        deadline_dates=tuple(match.group(0) for match in _DATE_PATTERN.finditer(text)),
        money_amounts=tuple(
            match.group(0) for match in _MONEY_PATTERN.finditer(text)
        ),
        has_address_info=any(pattern.search(text) for pattern in _ADDRESS_PATTERNS),
    )


def detect_risk_flags(text: str) -> RiskFlags:
    """Evaluate each risk keyword set independently."""
    lowered = text.lower()
    return RiskFlags(
        contains_legal_threat=contains_any(LEGAL_KEYWORDS, lowered),
        contains_chargeback_mention=contains_any(CHARGEBACK_KEYWORDS, lowered),
        contains_negative_review=contains_any(NEGATIVE_REVIEW_KEYWORDS, lowered),
        requires_refund=contains_any(REFUND_KEYWORDS, lowered),
    )


def extract_signals(text: str, prefixes: Sequence[str] = ()) -> Signals:
    """Run every extractor over ``text``."""
    lowered = text.lower()
    return Signals(
        entities=extract_entities(text, prefixes),
        risk_flags=detect_risk_flags(text),
        negative_word_count=count_matches(NEGATIVE_WORDS, lowered),
        positive_word_count=count_matches(POSITIVE_WORDS, lowered),
    )


def analyze_sentiment(text: str) -> SentimentAnalysis:
    """Label sentiment from the positive/negative word balance."""
    lowered = text.lower()
    balance = count_matches(POSITIVE_WORDS, lowered) - count_matches(
        NEGATIVE_WORDS, lowered
    )
    label = sentiment_label_for_balance(balance)
    score = max(-1.0, min(1.0, balance / 3))
    tags = tuple(
        tag
        for tag, keywords in _EMOTION_KEYWORDS.items()
        if contains_any(keywords, lowered)
    )
    return SentimentAnalysis(label=label, score=round(score, 2), emotion_tags=tags)


def sentiment_label_for_balance(balance: int) -> SentimentLabel:
    """Map ``positive - negative`` word counts onto the five labels."""
    if balance >= 3:
        return "very_positive"
    if balance >= 1:
        return "positive"
    if balance <= -3:
        return "very_negative"
    if balance <= -1:
        return "negative"
    return "neutral"


def score_for_label(label: SentimentLabel) -> float:
    """Return a representative score for a label lacking a measured score."""
    return _SENTIMENT_SCORES[label]


def parse_money_amount(raw: str) -> float:
    """Return the numeric value of a money token such as ``'£1,250.00'``."""
    match = re.search(r"\d+(?:,\d{3})*(?:\.\d+)?", raw)
    if not match:
        return 0.0
    return float(match.group(0).replace(",", ""))


_DATE_FORMATS = (
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d-%m-%Y",
    "%d-%m-%y",
    "%d %B %Y",
    "%d %b %Y",
    "%d %B %y",
    "%d %b %y",
    "%B %d %Y",
    "%b %d %Y",
)
_YEARLESS_FORMATS = ("%B %d", "%b %d")


def parse_deadline(raw: str, *, reference: datetime) -> datetime | None:
    """Parse an extracted date into the end of that day in UTC.

    Numeric dates are read day-first. Dates without a year take the year of
    ``reference``.
    """
    cleaned = re.sub(r"(?<=\d)(st|nd|rd|th)\b", "", raw, flags=re.IGNORECASE)
    cleaned = re.sub(r"[.,]", " ", cleaned)
    cleaned = " ".join(cleaned.split())
    parsed: datetime | None = None
    for fmt in _DATE_FORMATS:
        try:
            parsed = datetime.strptime(cleaned, fmt)
            break
        except ValueError:
            continue
    if parsed is None:
        for fmt in _YEARLESS_FORMATS:
            try:
                parsed = datetime.strptime(
                    f"{cleaned} {reference.year}", f"{fmt} %Y"
                )
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    return parsed.replace(hour=23, minute=59, second=59, tzinfo=UTC)


def identify_sender_type(
    email: EmailContent,
    *,
    customer_domains: Sequence[str] = (),
    excluded_senders: Sequence[str] = (),
) -> SenderType:
    """Infer who sent the email from its address and wording."""
    address = email.from_address.lower()
    name = (email.from_name or "").lower()

    if any(excluded.lower() in address for excluded in excluded_senders):
        return "internal"
    if contains_any(("noreply", "no-reply"), name) or contains_any(
        ("noreply", "no-reply", "automated", "notifications"), address
    ):
        return "automated_system"
    if any(domain.lower() in address for domain in customer_domains):
        return "customer"
    if contains_any(("invoice", "sales@", "accounts@", "purchasing@"), address):
        return "supplier"
    if contains_any(("order", "delivery", "tracking"), email.text.lower()):
        return "customer"
    return "unknown"


__all__ = [
    "CHARGEBACK_KEYWORDS",
    "LEGAL_KEYWORDS",
    "NEGATIVE_REVIEW_KEYWORDS",
    "NEGATIVE_WORDS",
    "POSITIVE_WORDS",
    "REFUND_KEYWORDS",
    "analyze_sentiment",
    "contains_any",
    "count_matches",
    "detect_risk_flags",
    "extract_entities",
    "extract_order_id",
    "extract_signals",
    "identify_sender_type",
    "parse_deadline",
    "parse_money_amount",
    "score_for_label",
    "sentiment_label_for_balance",
]
