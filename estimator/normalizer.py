"""
Category/Item Normalizer
Canonical keys for category names and line-item descriptions.

The same physical work shows up on several plan pages under slightly
different wording ("Semelles", "Semelles (Page 2)", "Béton de semelle").
Keys built here let the merger treat those as one item.
"""

import re
import unicodedata
from typing import Dict, List, Optional, Tuple

# Concept -> word stems (French and English). A token matches a stem when
# it starts with it; stems shorter than MIN_PREFIX_STEM must match the
# whole token or its plural ("sol" is not "solive", "pier" is not "pierre").
CORE_TERMS: Dict[str, Tuple[str, ...]] = {
    "beton": ("beton", "concrete"),
    "semelle": ("semelle", "footing"),
    "mur": ("mur", "wall"),
    "fondation": ("fondation", "foundation"),
    "coffrage": ("coffrage", "formwork"),
    "armature": ("armature", "rebar", "acier", "steel"),
    "excavation": ("excavation", "excaver", "creusage"),
    "remblai": ("remblai", "backfill"),
    "drain": ("drain",),
    "impermeabilisation": ("impermeabilisation", "impermeabilisant", "waterproof", "goudron"),
    "isolant": ("isolant", "isolation", "insulation", "polystyrene", "styrofoam"),
    "dalle": ("dalle", "slab"),
    "plancher": ("plancher", "floor"),
    "poutre": ("poutre", "beam"),
    "colonne": ("colonne", "column", "poteau"),
    "pilier": ("pilier", "pier", "pilot"),
    "ancrage": ("ancrage", "anchor"),
    "sol": ("sol", "soil"),
    "gravier": ("gravier", "gravel", "pierre concassee", "crushed stone"),
}

FALLBACK_KEY_LENGTH = 30
MIN_PREFIX_STEM = 5

_PAGE_REF = re.compile(r"\bpage\s*\d+\b")
_PARENTHETICAL = re.compile(r"\([^)]*\)")
_STOP_WORDS = re.compile(r"\b(?:pour\s+l[ae]|de\s+la|de\s+l'|de|du|des|et)\b|\bl'")
_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^a-z0-9' ]+")


def strip_accents(text: str) -> str:
    """Remove diacritics (é -> e, ç -> c)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(text: Optional[str]) -> str:
    """
    Canonical form of a name: lower-case, no accents, single spaces.

    normalize_key("Électricité ") -> "electricite"
    """
    if not text:
        return ""
    return _WHITESPACE.sub(" ", strip_accents(str(text).lower())).strip()


def clean_description(text: Optional[str]) -> str:
    """normalize_key plus removal of page refs, parentheticals and stop-words."""
    cleaned = normalize_key(text)
    cleaned = _PAGE_REF.sub(" ", cleaned)
    cleaned = _PARENTHETICAL.sub(" ", cleaned)
    cleaned = cleaned.replace("’", "'")
    cleaned = _STOP_WORDS.sub(" ", cleaned)
    cleaned = _NON_WORD.sub(" ", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def _token_matches(token: str, stem: str) -> bool:
    if len(stem) >= MIN_PREFIX_STEM:
        return token.startswith(stem)
    return token in (stem, stem + "s", stem + "x")


def match_core_terms(cleaned: str) -> List[str]:
    """Return the sorted concept names found in an already-cleaned description."""
    tokens = cleaned.split()
    found = set()
    for concept, stems in CORE_TERMS.items():
        for stem in stems:
            if " " in stem:
                if stem in cleaned:
                    found.add(concept)
                    break
            elif any(_token_matches(token, stem) for token in tokens):
                found.add(concept)
                break
    return sorted(found)


def normalize_item_description(text: Optional[str]) -> str:
    """
    Reduce an item description to its core-concept key.

    "Semelles (Page 2)" -> "semelle"
    "Béton pour la dalle" -> "beton|dalle"
    Descriptions with no core concept fall back to their first 30
    cleaned characters.
    """
    cleaned = clean_description(text)
    concepts = match_core_terms(cleaned)
    if concepts:
        return "|".join(concepts)
    return cleaned[:FALLBACK_KEY_LENGTH].strip()


def item_key(description: Optional[str], unit: Optional[str]) -> str:
    """Identity of a line item inside a category."""
    return f"{normalize_item_description(description)}|{normalize_key(unit)}"
