import re
import unicodedata
from typing import Iterable


def normalize_text(text: str) -> str:
    """Purpose: Normalize free-form chat text for stable keyword matching.
    Inputs/Outputs: Input is a raw string; output is a lowercase ASCII-only string with
        diacritics and apostrophes removed and whitespace collapsed.
    Side Effects / State: None; pure function.
    Dependencies: Uses unicodedata and regex; called by the classifier and extractor.
    Failure Modes: Returns an empty string when input is falsy.
    If Removed: Phrase checks miss punctuation variants ("what's" vs "whats").
    Testing Notes: "What's in my cart?" -> "whats in my cart".
    """
    # Lowercase, strip accents, drop apostrophes, then collapse punctuation.
    if not text:
        return ""
    lowered = text.lower()
    decomposed = unicodedata.normalize("NFD", lowered)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    stripped = re.sub(r"['’]", "", stripped)
    cleaned = re.sub(r"[^a-z0-9\s.]+", " ", stripped)
    cleaned = re.sub(r"(?<!\d)\.|\.(?!\d)", " ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def message_has_any_term(normalized: str, terms: Iterable[str]) -> bool:
    """Purpose: Check normalized text for any whole-word term in a term list.
    Inputs/Outputs: Inputs: normalized (str), terms (iterable[str]). Outputs: bool.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: Returns False for empty inputs or empty term lists.
    If Removed: Affirmation and keyword detection match inside other words.
    Testing Notes: "add" matches "please add it" but not "address".
    """
    # Match full terms against a padded normalized string to avoid substrings.
    if not normalized or not terms:
        return False
    padded = f" {normalized} "
    for term in terms:
        if not term:
            continue
        if f" {term} " in padded:
            return True
    return False


def format_size(size: float) -> str:
    """Render 9.0 as "9" and 7.5 as "7.5"."""
    value = float(size)
    if value.is_integer():
        return str(int(value))
    return f"{value:g}"


def format_price(amount: float) -> str:
    return f"${amount:.2f}"
