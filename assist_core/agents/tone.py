"""
Customer tone analysis and reply register adaptation.

The analyzer scores the last few customer messages against per-tone keyword
and regex lists (Egyptian/Arabic colloquial and English). The adapter biases
the reply two ways: a natural-language style directive for the generation
prompt, and deterministic phrase substitution on a drafted reply.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

NEUTRAL = "neutral"
FORMAL = "formal"
CASUAL = "casual"
SLANG = "slang"
PROFESSIONAL = "professional"

_ARABIC_DIACRITICS = re.compile(r"[ً-ْـ]")  # harakat and tatweel


def normalize_arabic(text: str) -> str:
    """Fold alef variants, strip diacritics and lowercase Latin text."""
    text = _ARABIC_DIACRITICS.sub("", text or "")
    text = re.sub("[أإآ]", "ا", text)
    text = text.replace("ى", "ي")
    return text.casefold()


@dataclass
class ToneProfile:
    category: str
    keywords: List[str]
    patterns: List[str]

    def __post_init__(self):
        self._keyword_res = [
            re.compile(rf"(?<!\w){re.escape(normalize_arabic(keyword))}(?!\w)")
            for keyword in dict.fromkeys(self.keywords)
        ]
        self._pattern_res = [re.compile(pattern, re.IGNORECASE) for pattern in self.patterns]

    def keyword_hits(self, text: str) -> int:
        return sum(len(regex.findall(text)) for regex in self._keyword_res)

    def pattern_matches(self, text: str) -> int:
        return sum(len(regex.findall(text)) for regex in self._pattern_res)

    def score(self, text: str, keyword_weight: int, pattern_weight: int) -> int:
        """Score normalized text; the profile itself holds no per-call state."""
        return self.keyword_hits(text) * keyword_weight + self.pattern_matches(text) * pattern_weight


def default_profiles() -> List[ToneProfile]:
    return [
        ToneProfile(
            category=FORMAL,
            keywords=[
                "حضرتك", "حضرتكم", "سيادتك", "سيادتكم", "من فضلك", "لو سمحت", "تفضل",
                "شكرا جزيلا", "اود", "ارجو", "يرجي", "السلام عليكم", "المحترم",
                "please", "kindly", "dear", "sir", "madam", "regards", "thank you", "sincerely",
            ],
            patterns=[
                r"\b(?:would|could) you (?:please|kindly)\b",
                r"(?:اود|ارجو) (?:ان|معرفه|معرفة)",
                r"\bdear (?:sir|madam|team)\b",
            ],
        ),
        ToneProfile(
            category=CASUAL,
            keywords=[
                "عايز", "عاوز", "عايزه", "ايه", "كده", "ازاي", "طب", "اوكي", "تمام", "دلوقتي", "بس",
                "hey", "hi", "thanks", "thx", "ok", "okay", "cool", "wanna", "gonna", "yeah",
            ],
            patterns=[
                r"!{2,}",
                r"\?{2,}",
                r"[\U0001F600-\U0001F64F\U0001F44D❤]",
            ],
        ),
        ToneProfile(
            category=SLANG,
            keywords=[
                "ازيك", "معلم", "يا معلم", "يسطا", "يا باشا", "يا برنس", "يا كبير", "جامد", "فشخ", "اشطا",
                "lol", "lmao", "bro", "dude", "yo", "bruh",
            ],
            patterns=[
                r"ه{3,}",
                r"(\w)\1{3,}",
                r"\bl+o+l+\b",
            ],
        ),
        ToneProfile(
            category=PROFESSIONAL,
            keywords=[
                "فاتوره", "فاتورة", "ضريبه", "ضريبة", "توريد", "جمله", "جملة", "عرض سعر", "تعاقد", "مورد",
                "invoice", "quotation", "quote", "wholesale", "bulk", "vat", "supplier", "contract", "specifications",
            ],
            patterns=[
                r"\b\d+\s*(?:pcs|units|قطعه|قطعة|قطع)\b",
                r"\b(?:po|sku)[-#]?\d+",
                r"\bnet\s*\d{2}\b",
            ],
        ),
    ]


@dataclass
class ToneAnalysis:
    dominant_tone: str
    confidence: float
    scores: Dict[str, int] = field(default_factory=dict)
    nominal_tone: str = NEUTRAL

    @property
    def is_neutral(self) -> bool:
        return self.dominant_tone == NEUTRAL

    def to_dict(self) -> Dict[str, object]:
        return {
            "dominantTone": self.dominant_tone,
            "confidence": self.confidence,
            "scores": dict(self.scores),
            "nominalTone": self.nominal_tone
        }


class ToneAnalyzer:
    """
    Infers the customer's register from recent messages.

    score(category) = keyword_hits * 2 + pattern_matches * 5
    confidence      = (top - second) / top, 0 when nothing scored and 1 when
                      a single category scored

    Below the confidence cutoff the register is forced to neutral; the
    category that won nominally is kept in `nominal_tone`.
    """

    KEYWORD_WEIGHT = 2
    PATTERN_WEIGHT = 5

    def __init__(self, profiles: Optional[List[ToneProfile]] = None, window: int = 5,
                 confidence_cutoff: float = 0.2):
        self.profiles = profiles if profiles is not None else default_profiles()
        self.window = window
        self.confidence_cutoff = confidence_cutoff

    def analyze(self, messages: Sequence[str]) -> ToneAnalysis:
        recent = [m for m in (messages or []) if m][-self.window:] if self.window > 0 else []
        text = normalize_arabic(" ".join(recent))

        scores = {
            profile.category: profile.score(text, self.KEYWORD_WEIGHT, self.PATTERN_WEIGHT) if text else 0
            for profile in self.profiles
        }

        ranked = sorted(scores.items(), key=lambda pair: pair[1], reverse=True)
        if not ranked or ranked[0][1] == 0:
            return ToneAnalysis(dominant_tone=NEUTRAL, confidence=0.0, scores=scores)

        top_category, top = ranked[0]
        scored = [score for _, score in ranked if score > 0]
        if len(scored) == 1:
            confidence = 1.0
        else:
            confidence = (top - scored[1]) / top

        dominant = top_category if confidence >= self.confidence_cutoff else NEUTRAL
        return ToneAnalysis(
            dominant_tone=dominant,
            confidence=round(confidence, 4),
            scores=scores,
            nominal_tone=top_category
        )


# Drafted-reply substitutions, applied with word boundaries. No replacement
# is itself a key of the same table, so applying a table twice changes nothing.
TO_FORMAL = {
    "عايز": "تريد",
    "عاوز": "تريد",
    "ايه": "ماذا",
    "كده": "هكذا",
    "دلوقتي": "الآن",
    "اوكي": "حسنا",
    "hey": "hello",
    "yeah": "yes",
    "okay": "certainly",
    "ok": "certainly",
    "thanks": "thank you",
    "gonna": "going to",
    "wanna": "want to",
}

TO_CASUAL = {
    "حضرتك": "انت",
    "يرجى": "ياريت",
    "الآن": "دلوقتي",
    "certainly": "sure",
    "hello": "hi",
    "thank you": "thanks",
    "please note": "just so you know",
}

SUBSTITUTIONS = {
    FORMAL: TO_FORMAL,
    PROFESSIONAL: TO_FORMAL,
    CASUAL: TO_CASUAL,
    SLANG: TO_CASUAL,
}

STYLE_DIRECTIVES = {
    FORMAL: ("Reply in a formal, respectful register. Use Modern Standard Arabic or polished English, "
             "complete sentences and no slang or emojis."),
    CASUAL: ("Reply in a friendly, relaxed register that mirrors the customer's everyday dialect. "
             "Keep sentences short and warm."),
    SLANG: ("The customer writes in street slang. Answer casually in their dialect with a light, upbeat tone, "
            "but stay polite and never use vulgar words."),
    PROFESSIONAL: ("Reply as a knowledgeable sales specialist: precise figures, clear terms, "
                   "concise and confident."),
    NEUTRAL: ("Reply in a balanced, friendly-professional register; do not imitate slang "
              "and do not become overly formal."),
}


def _compile_table(table: Dict[str, str]):
    keys = sorted(table, key=len, reverse=True)
    pattern = re.compile(r"(?<!\w)(" + "|".join(re.escape(k) for k in keys) + r")(?!\w)", re.IGNORECASE)
    lookup = {k.casefold(): v for k, v in table.items()}
    return pattern, lookup


class ToneAdapter:
    """Applies a tone to drafted replies and to generation prompts."""

    def __init__(self, substitutions: Optional[Dict[str, Dict[str, str]]] = None,
                 directives: Optional[Dict[str, str]] = None):
        substitutions = substitutions if substitutions is not None else SUBSTITUTIONS
        self.directives = directives if directives is not None else STYLE_DIRECTIVES
        self._tables = {tone: _compile_table(table) for tone, table in substitutions.items() if table}

    def adapt(self, reply: str, tone: str) -> str:
        """Rewrite a drafted reply toward the tone; no-op for neutral or no matches."""
        compiled = self._tables.get(tone)
        if not reply or compiled is None:
            return reply

        pattern, lookup = compiled

        def swap(match):
            original = match.group(0)
            replacement = lookup[original.casefold()]
            if original[:1].isupper():
                replacement = replacement[:1].upper() + replacement[1:]
            return replacement

        return pattern.sub(swap, reply)

    def style_directive(self, tone: str) -> str:
        return self.directives.get(tone, self.directives[NEUTRAL])

    def inject_directive(self, prompt: str, tone: str) -> str:
        """Append the style directive to a generation prompt once."""
        directive = self.style_directive(tone)
        if directive in (prompt or ""):
            return prompt
        return f"{(prompt or '').rstrip()}\n\n[Response style] {directive}".lstrip()
