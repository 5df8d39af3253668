# FILE: services/vocabulary.py
"""
Phrase vocabulary shared by the classifier, the entitlement gate and the
extractors. English first, with German and Spanish phrasings for the
requests that matter to the paywall.
"""

import re
from typing import Optional

from services.amounts import has_amount

_I = re.IGNORECASE

GREETING_RE = re.compile(
    r"^\s*(?:hi|hello|hey|hallo|hola|servus|moin|good\s+(?:morning|afternoon|evening)|buenos\s+d[ií]as)"
    r"(?:\s+there)?\s*[!.?]*\s*$",
    _I,
)

IDENTITY_RE = re.compile(
    r"\b(?:who\s+are\s+you|what\s+are\s+you|what\s+is\s+this(?:\s+app)?|what(?:'s|\s+is)\s+anita"
    r"|what\s+can\s+you\s+do|how\s+(?:does\s+this(?:\s+app)?|do\s+you)\s+work|what\s+do\s+you\s+do"
    r"|how\s+do\s+i\s+use\s+(?:this|you|the\s+app)|wer\s+bist\s+du|was\s+kannst\s+du"
    r"|qui[eé]n\s+eres|qu[eé]\s+puedes\s+hacer)\b",
    _I,
)

ADD_INCOME_RE = re.compile(
    r"\b(?:add(?:ed)?\s+(?:an?\s+|my\s+|some\s+)?income|income\s+of|received|got\s+paid|earned"
    r"|i\s+made|salary\s+(?:came|of|is|was)|paycheck|deposit(?:ed)?|bonus\s+of|payment\s+received"
    r"|einnahme|gehalt\s+(?:von|bekommen|erhalten)|erhalten|ingreso|cobr[eé]|recib[ií])\b",
    _I,
)

ADD_EXPENSE_RE = re.compile(
    r"\b(?:add(?:ed)?\s+(?:an?\s+|my\s+|this\s+)?expense|expense\s+of|spent|spend|paid|payed|bought"
    r"|purchased|cost\s+me|ausgabe|ausgegeben|bezahlt|gekauft|gast[eé]|pagu[eé]|compr[eé])\b",
    _I,
)

# "got paid" is income even though it contains "paid"
INCOME_IDIOM_RE = re.compile(r"\b(?:got\s+paid|payment\s+received|paid\s+me)\b", _I)

TRANSFER_RE = re.compile(
    r"\b(?:transfer(?:red)?|moved\s+.{0,40}?\bto\s+(?:my\s+)?(?:savings|account)|[üu]berwiesen|transfer[ií])\b",
    _I,
)

GOAL_RE = re.compile(
    r"\b(?:sav(?:e|ing)\s+(?:up\s+)?(?:for|towards?|to\s+buy)|savings\s+(?:goal|target)|set\s+(?:a|up\s+a|my)\s+(?:savings\s+)?(?:goal|target)"
    r"|(?:new|create\s+a|add\s+a)\s+(?:savings\s+)?(?:goal|target)|i\s+want\s+to\s+save|my\s+goal"
    r"|sparziel|sparen\s+f[üu]r|ahorrar\s+para|meta\s+de\s+ahorro|objetivo\s+de\s+ahorro)\b",
    _I,
)

LIMIT_RE = re.compile(
    r"\b(?:(?:spending\s+)?limits?|cap\s+(?:my|on)|budget\s+(?:for|of|limit)|set\s+(?:a\s+)?budget"
    r"|max(?:imum)?\s+spend(?:ing)?|spend\s+(?:no\s+more|less)\s+than"
    r"|ausgabenlimit|limit\s+festlegen|budget\s+festlegen|obergrenze"
    r"|l[ií]mite(?:\s+de\s+gasto)?|tope\s+de\s+gasto|presupuesto\s+(?:para|de))\b",
    _I,
)

ANALYSIS_RE = re.compile(
    r"\b(?:analy[sz]e|analysis|analytics|insights?|how\s+am\s+i\s+doing|overview|budget\s+review"
    r"|review\s+my\s+(?:budget|finances|spending)|financial\s+health|summary\s+of\s+my"
    r"|how\s+much\s+(?:can|should)\s+i\s+save|auswertung|analysieren|an[aá]lisis|analiza)\b",
    _I,
)

SPENDING_RE = re.compile(
    r"\b(?:where\s+(?:is|does|did)\s+my\s+money\s+go(?:ing)?|what\s+did\s+i\s+spend"
    r"|biggest\s+(?:expenses?|spending)|top\s+(?:spending\s+)?categor(?:y|ies)|spending\s+breakdown"
    r"|breakdown|spend(?:ing)?\s+the\s+most|most\s+money|where\s+am\s+i\s+spending|rank\s+my"
    r"|how\s+much\s+(?:have|did|do)\s+i\s+(?:spent|spend)|what\s+have\s+i\s+spent"
    r"|wof[üu]r\s+gebe\s+ich|en\s+qu[eé]\s+gasto)\b",
    _I,
)

AFFIRMATIVE_WORDS = frozenset({
    "yes", "yeah", "yep", "yup", "sure", "ok", "okay", "do", "it", "go", "ahead", "please",
    "sounds", "good", "great", "let's", "lets", "set", "them", "all", "create", "confirm",
    "confirmed", "of", "course", "absolutely", "that", "one", "this", "perfect", "fine",
    "ja", "bitte", "mach", "das", "si", "sí", "claro", "vale", "dale", "hazlo",
})
_AFFIRMATIVE_CORE = frozenset({
    "yes", "yeah", "yep", "yup", "sure", "ok", "okay", "do", "go", "please", "sounds",
    "let's", "lets", "set", "create", "confirm", "confirmed", "absolutely", "perfect", "fine",
    "ja", "mach", "si", "sí", "claro", "vale", "dale", "hazlo", "course",
})

# Question openers. can/could/would also open requests ("could you add 20 for lunch")
_QUESTION_OPENER_RE = re.compile(
    r"^\s*(?:how|what|where|when|which|why|did|does|have|has|is|are|was|were|wie|wo|cu[aá]nto|qu[eé]|d[oó]nde)\b",
    _I,
)

_word_re = re.compile(r"[a-zA-ZÀ-ÿ']+")


def words(text: Optional[str]):
    return [w.lower() for w in _word_re.findall(text or "")]


def is_affirmative(text: Optional[str]) -> bool:
    """Bare agreement: "yes", "do it", "ok set them all", "ja bitte"."""
    tokens = words(text)
    if not tokens or len(tokens) > 6 or has_amount(text):
        return False
    return all(t in AFFIRMATIVE_WORDS for t in tokens) and any(t in _AFFIRMATIVE_CORE for t in tokens)


def is_short_followup(text: Optional[str], max_words: int = 6) -> bool:
    tokens = (text or "").split()
    return 0 < len(tokens) <= max_words


def is_question(text: Optional[str]) -> bool:
    if not text:
        return False
    return text.rstrip().endswith("?") or _QUESTION_OPENER_RE.search(text) is not None


def asks_about_spending(text: Optional[str]) -> bool:
    """A question about money already spent; never a request to record."""
    return bool(text) and (is_question(text) or SPENDING_RE.search(text) is not None)


def is_greeting_or_identity(text: Optional[str]) -> bool:
    return bool(text) and (GREETING_RE.search(text) is not None or IDENTITY_RE.search(text) is not None)


def mentions_expense(text: Optional[str]) -> bool:
    """Spending vocabulary, ignoring income idioms such as "got paid"."""
    return bool(text) and ADD_EXPENSE_RE.search(INCOME_IDIOM_RE.sub(" ", text)) is not None


def mentions_add_record(text: Optional[str]) -> bool:
    return bool(text) and (ADD_INCOME_RE.search(text) is not None or ADD_EXPENSE_RE.search(text) is not None)


def mentions_goal(text: Optional[str]) -> bool:
    return bool(text) and GOAL_RE.search(text) is not None


def mentions_limit(text: Optional[str]) -> bool:
    return bool(text) and LIMIT_RE.search(text) is not None


def is_unambiguous_add(text: Optional[str]) -> bool:
    """Add-income / add-expense phrasing with a number and nothing paid mixed in."""
    if not text or not mentions_add_record(text) or not has_amount(text):
        return False
    if asks_about_spending(text) or mentions_goal(text) or mentions_limit(text):
        return False
    return ANALYSIS_RE.search(text) is None
