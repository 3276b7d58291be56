# utils/contact_validation.py
import re
from typing import Optional

_TLDS = r"(?:com|net|org|io|co|uk|edu|gov|info|biz|me|tv|xyz|website|online|site|web|tech|app|dev|store|shop)"

PHONE_PATTERNS = [
    re.compile(r"\d{10,}"),
    re.compile(r"\b\d{3}[-.\s]\d{3}[-.\s]\d{4}\b"),
    re.compile(r"\(\d{3}\)\s?\d{3}[-.]?\d{4}\b"),
    re.compile(r"\+\d{1,4}[-.\s]?\(?\d{1,4}\)?[-.\s]?\d{1,4}[-.\s]?\d{1,9}\b"),
    re.compile(r"\b(?:call|text|dial|whatsapp)\s+(?:me\s+)?(?:on\s+|at\s+)?\+?\d[\d\s.-]{6,}", re.IGNORECASE),
    re.compile(r"\b(?:number|phone|mobile|cell|tel)\s+(?:is\s+)?\+?\d[\d\s.-]{6,}", re.IGNORECASE),
]

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")

WEBSITE_PATTERNS = [
    re.compile(r"https?://\S+", re.IGNORECASE),
    re.compile(r"www\.[a-z0-9][a-z0-9-]{0,61}\.[a-z]{2,}\S*", re.IGNORECASE),
    re.compile(r"\b[a-z0-9][a-z0-9-]{1,61}\." + _TLDS + r"\b", re.IGNORECASE),
]

HANDLE_PATTERN = re.compile(
    r"\b(?:instagram|insta|ig|telegram|snapchat|snap|discord|skype|facebook|fb)\b\s*[:\-]?\s*@?\w{3,}",
    re.IGNORECASE,
)


def find_contact_info(text: Optional[str]) -> Optional[str]:
    """
    Returns a user-facing reason if the text shares contact details, else None.
    """
    if not text or not text.strip():
        return None

    for pattern in PHONE_PATTERNS:
        if pattern.search(text):
            return "Sharing phone numbers is not allowed. Please communicate through this platform only."

    if EMAIL_PATTERN.search(text):
        return "Sharing email addresses is not allowed. Please communicate through this platform only."

    for pattern in WEBSITE_PATTERNS:
        if pattern.search(text):
            return "Sharing websites or links is not allowed. Please communicate through this platform only."

    if HANDLE_PATTERN.search(text):
        return "Sharing social media handles is not allowed. Please communicate through this platform only."

    return None
