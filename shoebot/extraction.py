"""Entity extraction and conversation-context helpers.

Everything here is a pure function of its inputs: raw chat text, the catalog's
product names, and stored chat messages. No store or model access.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .models import Awaiting, ChatMessage
from .utils import normalize_text

Size = Union[int, float]

EXPLICIT_SIZE_RE = re.compile(r"\bsizes?\s*(\d+(?:\.\d+)?)\b", re.IGNORECASE)
STANDALONE_NUMBER_RE = re.compile(r"(?<![\w.$])(\d+(?:\.\d+)?)(?![\w]|\.\d)")

CHECKOUT_PROMPT_PHRASES = [
    "proceed with placing this order",
    "proceed with placing your order",
    "place this order",
    "confirm your order",
    "confirm the order",
    "proceed to checkout",
]
DUPLICATE_PROMPT_PHRASES = ["already in your cart"]
SIZE_PROMPT_PHRASES = ["what size", "which size", "size would you like", "in what size"]


def _name_pattern(name: str) -> "re.Pattern[str]":
    # Words of the name may be separated by arbitrary text.
    words = [re.escape(word) for word in name.split()]
    return re.compile(".*?".join(words), re.IGNORECASE)


def _find_product(text: str, catalog_names: Iterable[str]) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    if not text:
        return None, None
    for name in sorted(catalog_names, key=len, reverse=True):
        if not name.strip():
            continue
        match = _name_pattern(name).search(text)
        if match:
            return name, match.span()
    return None, None


def _to_size(raw: str) -> Size:
    value = float(raw)
    return int(value) if value.is_integer() else value


def extract_size(text: str, ignore_span: Optional[Tuple[int, int]] = None) -> Optional[Size]:
    """Purpose: Find the shoe size mentioned in a message.
    Inputs/Outputs: Input is raw text and an optional span to skip; returns the size or None.
    Side Effects / State: None.
    Dependencies: EXPLICIT_SIZE_RE and STANDALONE_NUMBER_RE.
    Failure Modes: Any other free-standing number (a price, a count) is read as a size.
    If Removed: Add/remove flows can never complete without a size prompt.
    Testing Notes: "size 10" -> 10; "9" -> 9; "7.5 please" -> 7.5.
    """
    # Prefer an explicit "size N", then any standalone number outside the product name.
    if not text:
        return None
    explicit = EXPLICIT_SIZE_RE.search(text)
    if explicit:
        return _to_size(explicit.group(1))
    searchable = text
    if ignore_span:
        start, end = ignore_span
        searchable = text[:start] + " " * (end - start) + text[end:]
    standalone = STANDALONE_NUMBER_RE.search(searchable)
    if standalone:
        return _to_size(standalone.group(1))
    return None


def extract(text: str, catalog_names: Iterable[str]) -> Tuple[Optional[str], Optional[Size]]:
    """Purpose: Extract one product name and one size from a chat message.
    Inputs/Outputs: Input is raw text plus catalog names; returns (product_name, size).
    Side Effects / State: None; pure function.
    Dependencies: _find_product (longest name first) and extract_size.
    Failure Modes: Only the first (longest) product is returned for multi-product text.
    If Removed: The classifier has no entities and every turn falls back to the model.
    Testing Notes: "add the Nike Air Max 270 size 10" picks "Nike Air Max 270" and 10.
    """
    # Match the product first so digits inside its name are not taken as a size.
    name, span = _find_product(text, catalog_names)
    return name, extract_size(text, ignore_span=span)


def product_mentioned_in(text: str, catalog_names: Iterable[str]) -> Optional[str]:
    """Longest catalog name mentioned in text (typically a prior bot reply)."""
    name, _ = _find_product(text, catalog_names)
    return name


def last_bot_utterance(messages: Sequence[ChatMessage]) -> str:
    """Purpose: Return the most recent bot message, lower-cased.
    Inputs/Outputs: Input is the ordered chat messages; output is text or "".
    Side Effects / State: None.
    Dependencies: ChatMessage.role.
    Failure Modes: Returns "" when the bot has not spoken yet.
    If Removed: Legacy histories without stored state lose multi-turn context.
    Testing Notes: [user, bot "What size?", user] -> "what size?".
    """
    # Walk backwards to the latest bot turn.
    for message in reversed(messages):
        if message.role == "bot":
            return message.text.lower()
    return ""


def is_checkout_prompt(text: str) -> bool:
    normalized = normalize_text(text)
    return any(phrase in normalized for phrase in CHECKOUT_PROMPT_PHRASES)


def awaiting_from_utterance(text: str, catalog_names: Iterable[str]) -> Awaiting:
    """Purpose: Reconstruct what a bot reply asked the user for.
    Inputs/Outputs: Input is a bot utterance and catalog names; returns an Awaiting state.
    Side Effects / State: None.
    Dependencies: is_checkout_prompt, product_mentioned_in, extract_size.
    Failure Modes: Unrecognised phrasing yields Awaiting(kind="none").
    If Removed: Model-written size and confirmation prompts cannot be answered with
        a bare "yes" or "9" on the next turn.
    Testing Notes: "What size of the Vans Old Skool would you like?" -> size_for_add.
    """
    # Order of checks mirrors the precedence of the prompts the bot writes.
    normalized = normalize_text(text)
    if not normalized:
        return Awaiting()
    if is_checkout_prompt(text):
        return Awaiting(kind="confirm_checkout")
    names: List[str] = list(catalog_names)
    product, span = _find_product(text, names)
    if product and any(phrase in normalized for phrase in DUPLICATE_PROMPT_PHRASES):
        return Awaiting(kind="confirm_duplicate", product=product, size=extract_size(text, ignore_span=span))
    if product and any(phrase in normalized for phrase in SIZE_PROMPT_PHRASES):
        kind = "size_for_remove" if "remove" in normalized else "size_for_add"
        return Awaiting(kind=kind, product=product)
    return Awaiting()
