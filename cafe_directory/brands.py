"""Franchise classification by brand-token matching on normalized names."""
from __future__ import annotations

import unicodedata
from typing import FrozenSet, Iterable

from .models import BRAND_CHAIN, BRAND_INDEPENDENT

# Name variants and transliterations of known cafe chains. A chain missing
# from this list is always classified as independent.
FRANCHISE_TOKENS = (
    "스타벅스", "starbucks", "스벅", "리저브",
    "이디야", "ediya",
    "투썸", "twosome", "투썸플레이스",
    "할리스", "hollys", "hollyscoffee",
    "엔제리너스", "angelinus",
    "파스쿠찌", "pascucci",
    "커피빈", "coffeebean", "thecoffeebean",
    "빽다방", "paik", "paiks",
    "폴바셋", "paulbassett",
    "탐앤탐스", "tomntoms", "tomandtoms",
    "컴포즈", "컴포즈커피", "composecoffee", "compose",
    "드롭탑", "droptop",
    "요거프레소", "yogerpresso",
    "커피베이", "coffeebay",
    "더벤티", "venti",
    "매머드", "mammoth", "mammothcoffee",
    "공차", "gongcha",
    "메가커피", "megamgc", "megacoffee",
    "달콤", "dalkomm",
    "카페베네", "caffebene",
)

BRAND_LABELS = {
    BRAND_CHAIN: "프랜차이즈",
    BRAND_INDEPENDENT: "개인 카페",
}


def normalize_brand(text: str) -> str:
    """NFKD-normalize, lowercase, and keep only letters and digits.

    Decomposition splits Hangul syllables into jamo; both the vocabulary and
    the names go through the same function, so substring tests stay valid.
    """
    decomposed = unicodedata.normalize("NFKD", text or "").lower()
    return "".join(
        ch for ch in decomposed if unicodedata.category(ch)[0] in ("L", "N")
    )


def build_brand_set(tokens: Iterable[str]) -> FrozenSet[str]:
    return frozenset(t for t in (normalize_brand(tok) for tok in tokens) if t)


BRAND_SET = build_brand_set(FRANCHISE_TOKENS)


def is_chain(name: str, brand_set: FrozenSet[str] = BRAND_SET) -> bool:
    normalized = normalize_brand(name)
    if not normalized:
        return False
    return any(token in normalized for token in brand_set)


def classify(name: str, brand_set: FrozenSet[str] = BRAND_SET) -> str:
    return BRAND_CHAIN if is_chain(name, brand_set) else BRAND_INDEPENDENT
