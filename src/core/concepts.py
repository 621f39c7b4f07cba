"""
Canonical statistics concepts and the bilingual concept-name normalizer.

Every component that reads or writes a concept name goes through
normalize_concept(). Labels arrive in English or Chinese (Traditional or
Simplified), in any casing, from question imports, generated questions and
legacy rows. Anything that cannot be mapped becomes Concept.UNKNOWN, which
callers treat as a valid bucket rather than an error.
"""

from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from typing import Any

from loguru import logger

from src.core.exceptions import InvalidRequestError


class Concept(str, Enum):
    """The fixed set of statistics topics tracked per user."""

    DESCRIPTIVE_STATISTICS = "Descriptive Statistics"
    STANDARD_DEVIATION = "Standard Deviation"
    ONE_SAMPLE_T_TEST = "One-Sample t-Test"
    INDEPENDENT_SAMPLES_T_TEST = "Independent-Samples t-Test"
    PAIRED_SAMPLES_T_TEST = "Paired-Samples t-Test"
    CORRELATION = "Correlation Analysis"
    SIMPLE_REGRESSION = "Simple Regression"
    CHI_SQUARE = "Chi-Square Test"
    UNKNOWN = "Unknown"

    @property
    def label_zh(self) -> str | None:
        """Traditional-Chinese label used by the original question bank."""
        return _ZH_LABELS.get(self)

    @property
    def is_known(self) -> bool:
        return self is not Concept.UNKNOWN


_ZH_LABELS: dict[Concept, str] = {
    Concept.DESCRIPTIVE_STATISTICS: "描述統計",
    Concept.STANDARD_DEVIATION: "標準差",
    Concept.ONE_SAMPLE_T_TEST: "單樣本t檢定",
    Concept.INDEPENDENT_SAMPLES_T_TEST: "獨立樣本t檢定",
    Concept.PAIRED_SAMPLES_T_TEST: "配對樣本t檢定",
    Concept.CORRELATION: "相關分析",
    Concept.SIMPLE_REGRESSION: "簡單迴歸",
    Concept.CHI_SQUARE: "卡方檢定",
}

# Ordered canonical set, excluding the UNKNOWN sentinel.
CANONICAL_CONCEPTS: tuple[Concept, ...] = tuple(c for c in Concept if c.is_known)

# Lowest-difficulty default for brand-new users.
ENTRY_CONCEPT = Concept.DESCRIPTIVE_STATISTICS


# =============================================================================
# Alias tables
# =============================================================================

_RAW_ALIASES: dict[str, Concept] = {
    # English
    "descriptive statistics": Concept.DESCRIPTIVE_STATISTICS,
    "descriptive stats": Concept.DESCRIPTIVE_STATISTICS,
    "standard deviation": Concept.STANDARD_DEVIATION,
    "sd": Concept.STANDARD_DEVIATION,
    "one sample t test": Concept.ONE_SAMPLE_T_TEST,
    "one-sample t test": Concept.ONE_SAMPLE_T_TEST,
    "one sample t-test": Concept.ONE_SAMPLE_T_TEST,
    "single sample t test": Concept.ONE_SAMPLE_T_TEST,
    "independent t test": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "independent samples t test": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "independent sample t test": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "two sample t test": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "paired t test": Concept.PAIRED_SAMPLES_T_TEST,
    "paired samples t test": Concept.PAIRED_SAMPLES_T_TEST,
    "paired sample t test": Concept.PAIRED_SAMPLES_T_TEST,
    "dependent samples t test": Concept.PAIRED_SAMPLES_T_TEST,
    "correlation": Concept.CORRELATION,
    "correlation analysis": Concept.CORRELATION,
    "pearson correlation": Concept.CORRELATION,
    "simple regression": Concept.SIMPLE_REGRESSION,
    "simple linear regression": Concept.SIMPLE_REGRESSION,
    "linear regression": Concept.SIMPLE_REGRESSION,
    "regression": Concept.SIMPLE_REGRESSION,
    "chi square": Concept.CHI_SQUARE,
    "chi-square": Concept.CHI_SQUARE,
    "chi square test": Concept.CHI_SQUARE,
    "chi-square test": Concept.CHI_SQUARE,
    "chi squared test": Concept.CHI_SQUARE,
    # Traditional Chinese (canonical labels)
    "描述統計": Concept.DESCRIPTIVE_STATISTICS,
    "標準差": Concept.STANDARD_DEVIATION,
    "單樣本t檢定": Concept.ONE_SAMPLE_T_TEST,
    "獨立樣本t檢定": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "配對樣本t檢定": Concept.PAIRED_SAMPLES_T_TEST,
    "相關分析": Concept.CORRELATION,
    "簡單迴歸": Concept.SIMPLE_REGRESSION,
    "卡方檢定": Concept.CHI_SQUARE,
    # Simplified Chinese variants
    "描述统计": Concept.DESCRIPTIVE_STATISTICS,
    "标准差": Concept.STANDARD_DEVIATION,
    "单样本t检定": Concept.ONE_SAMPLE_T_TEST,
    "单样本t检验": Concept.ONE_SAMPLE_T_TEST,
    "独立样本t检定": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "独立样本t检验": Concept.INDEPENDENT_SAMPLES_T_TEST,
    "配对样本t检定": Concept.PAIRED_SAMPLES_T_TEST,
    "配对样本t检验": Concept.PAIRED_SAMPLES_T_TEST,
    "相关分析": Concept.CORRELATION,
    "简单回归": Concept.SIMPLE_REGRESSION,
    "简单迴归": Concept.SIMPLE_REGRESSION,
    "卡方检定": Concept.CHI_SQUARE,
    "卡方检验": Concept.CHI_SQUARE,
}

_SEPARATORS = re.compile(r"[\s_\-–]+")


def _fold(raw: str) -> str:
    """Trim, case-fold and collapse separators to single spaces."""
    return _SEPARATORS.sub(" ", raw.strip().casefold()).strip()


ALIAS_TABLE: MappingProxyType[str, Concept] = MappingProxyType(dict(_RAW_ALIASES))

_FOLDED_ALIAS_TABLE: MappingProxyType[str, Concept] = MappingProxyType(
    {
        **{_fold(c.value): c for c in CANONICAL_CONCEPTS},
        **{_fold(alias): concept for alias, concept in _RAW_ALIASES.items()},
    }
)

_CANONICAL_BY_NAME: MappingProxyType[str, Concept] = MappingProxyType(
    {
        **{c.value: c for c in Concept},
        **{label: c for c, label in _ZH_LABELS.items()},
    }
)


# =============================================================================
# Normalization
# =============================================================================


def normalize_concept(raw: Any) -> Concept:
    """
    Map a free-text concept label onto the canonical enumeration.

    Lookup order: exact alias, folded alias, exact canonical name. Unmapped
    input yields Concept.UNKNOWN and a warning. Never raises, and
    normalize_concept(normalize_concept(x)) == normalize_concept(x).
    """
    if isinstance(raw, Concept):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        logger.warning(f"Unknown concept name: {raw!r}")
        return Concept.UNKNOWN

    concept = ALIAS_TABLE.get(raw)
    if concept is not None:
        return concept

    concept = _FOLDED_ALIAS_TABLE.get(_fold(raw))
    if concept is not None:
        return concept

    concept = _CANONICAL_BY_NAME.get(raw)
    if concept is not None:
        return concept

    logger.warning(f"Unknown concept name: {raw!r}")
    return Concept.UNKNOWN


def parse_concept_filter(raw: str | None) -> Concept | None:
    """
    Normalize an optional concept filter from a request.

    Returns None for an absent filter. An unmappable filter is a caller
    error, unlike stored data where UNKNOWN is a valid bucket.
    """
    if raw is None or not raw.strip():
        return None
    concept = normalize_concept(raw)
    if not concept.is_known:
        raise InvalidRequestError(f"Unknown concept: {raw}")
    return concept


# =============================================================================
# Concept detection in chat messages
# =============================================================================

CONCEPT_KEYWORDS: MappingProxyType[Concept, tuple[str, ...]] = MappingProxyType(
    {
        Concept.DESCRIPTIVE_STATISTICS: (
            "平均數", "中位數", "眾數", "描述", "統計量",
            "mean", "median", "mode", "descriptive",
        ),
        Concept.STANDARD_DEVIATION: (
            "標準差", "變異數", "分散", "離散", "sd", "variance", "standard deviation",
        ),
        Concept.ONE_SAMPLE_T_TEST: (
            "單樣本", "t檢定", "假設檢定", "顯著性", "t-test", "one sample", "one-sample",
        ),
        Concept.INDEPENDENT_SAMPLES_T_TEST: (
            "獨立樣本", "兩樣本", "群體差異", "independent samples", "two sample",
        ),
        Concept.PAIRED_SAMPLES_T_TEST: (
            "配對", "前後測", "重複測量", "相依樣本", "paired", "before-after",
        ),
        Concept.CORRELATION: (
            "相關", "關聯", "線性關係", "r值", "correlation", "pearson",
        ),
        Concept.SIMPLE_REGRESSION: (
            "迴歸", "預測", "線性迴歸", "斜率", "regression", "slope",
        ),
        Concept.CHI_SQUARE: (
            "卡方", "類別變數", "獨立性檢定", "適合度檢定", "chi-square", "chi square",
        ),
    }
)

_WORD_CHARS = re.compile(r"^[a-z0-9 \-]+$")


def identify_concepts(message: str) -> list[Concept]:
    """Detect which concepts a chat message mentions, in canonical order."""
    if not message:
        return []

    lowered = message.casefold()
    found: list[Concept] = []
    for concept, keywords in CONCEPT_KEYWORDS.items():
        for keyword in keywords:
            if _WORD_CHARS.match(keyword):
                # Latin keywords need word boundaries ("sd" must not hit "wisdom").
                if re.search(rf"\b{re.escape(keyword)}\b", lowered):
                    found.append(concept)
                    break
            elif keyword in lowered:
                found.append(concept)
                break
    return found
