"""Human-readable names for the language codes reported by the OCR operation."""

from typing import Optional

# Codes the OCR operation can report, mapped to their English names
LANGUAGE_NAMES = {
    "ar": "Arabic",
    "cs": "Czech",
    "da": "Danish",
    "de": "German",
    "el": "Greek",
    "en": "English",
    "es": "Spanish",
    "fi": "Finnish",
    "fr": "French",
    "hu": "Hungarian",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "nb": "Norwegian Bokmål",
    "nl": "Dutch",
    "pl": "Polish",
    "pt": "Portuguese",
    "ro": "Romanian",
    "ru": "Russian",
    "sk": "Slovak",
    "sr": "Serbian",
    "sr-cyrl": "Serbian (Cyrillic)",
    "sr-latn": "Serbian (Latin)",
    "sv": "Swedish",
    "tr": "Turkish",
    "zh": "Chinese",
    "zh-hans": "Chinese (Simplified)",
    "zh-hant": "Chinese (Traditional)",
}


def language_display_name(code: Optional[str]) -> str:
    """Return the English name for a language code, or the code itself if unknown."""
    if not code:
        return ""
    key = code.strip().lower().replace("_", "-")
    if key in LANGUAGE_NAMES:
        return LANGUAGE_NAMES[key]
    primary = key.split("-", 1)[0]
    return LANGUAGE_NAMES.get(primary, code)
