"""
Disclosure vocabulary checks shared by the compliance validator and the
store's APPROVED invariant.

Matching is a plain substring test on the lowercased script text, so short
tokens such as 'ad' also match inside longer words.
"""

from typing import Any, Dict, List, Optional

from .config import DisclosureVocabulary
from .models import ADVERTISING_DISCLOSURE, AFFILIATE_DISCLOSURE


def script_text(script_content: Dict[str, Any]) -> str:
    """Flatten the string values of a script section into lowercase text."""
    parts: List[str] = []

    def _collect(value: Any) -> None:
        if isinstance(value, str):
            parts.append(value)
        elif isinstance(value, dict):
            for v in value.values():
                _collect(v)
        elif isinstance(value, (list, tuple)):
            for v in value:
                _collect(v)

    _collect(script_content)
    return "\n".join(parts).lower()


def has_advertising_disclosure(text: str, vocabulary: DisclosureVocabulary) -> bool:
    return any(token in text for token in vocabulary.advertising)


def has_affiliate_disclosure(text: str, vocabulary: DisclosureVocabulary) -> bool:
    return any(token in text for token in vocabulary.affiliate)


def missing_disclosures(
    script_content: Dict[str, Any],
    required: List[str],
    vocabulary: Optional[DisclosureVocabulary] = None
) -> List[str]:
    """
    List required disclosures that the script does not contain.

    Args:
        script_content: Script section of a queue item
        required: Required disclosure names
        vocabulary: Token sets; defaults to the standard vocabulary

    Returns:
        Names from `required` with no matching token in the script
    """
    vocabulary = vocabulary or DisclosureVocabulary()
    text = script_text(script_content)

    missing = []
    for name in required:
        if name == ADVERTISING_DISCLOSURE and not has_advertising_disclosure(text, vocabulary):
            missing.append(name)
        elif name == AFFILIATE_DISCLOSURE and not has_affiliate_disclosure(text, vocabulary):
            missing.append(name)
    return missing
