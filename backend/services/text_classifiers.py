# backend/services/text_classifiers.py
"""
Text Classifiers

Pure string heuristics used to police model output and candidate input. None of
these functions touch the network or keep state, so any of them can be swapped
for a stronger classifier without changing the regeneration loop.

Key Responsibilities:
- Question shape checks (interrogative opener, trailing "?", word count)
- Answer-like output detection (the model replied as the candidate)
- Hallucinated entity detection against the context the model was given
- Markdown / structural noise removal
- Near-duplicate detection via word-set overlap
- Batch output splitting and required-skill extraction
- Skip / repeat / elaborate intent detection on candidate utterances
"""

import re
from typing import Dict, Iterable, List, Optional, Union

# Similarity at or above this is treated as the same question
REPEAT_THRESHOLD = 0.75

BATCH_DELIMITER = "|||"

QUESTION_OPENERS = (
    "who", "what", "when", "where", "why", "how", "describe", "explain",
    "can", "could", "do", "did", "are", "is", "would", "should", "tell",
    "walk", "compare", "which", "whom", "please",
)

ANSWER_LIKE_PREFIXES = (
    "i ", "i'm ", "i've ", "i’ve ", "we ", "we've ", "we’ve ",
    "during ", "in my ", "my ", "absolutely", "sure", "yes,",
)

# Keyword -> display name, scanned when a job has no explicit skills line
TECH_KEYWORDS = {
    "html": "HTML",
    "css": "CSS",
    "javascript": "JavaScript",
    "typescript": "TypeScript",
    "react": "React",
    "vue": "Vue",
    "angular": "Angular",
    "node": "Node.js",
    "express": "Express",
    "mongodb": "MongoDB",
    "mysql": "MySQL",
    "postgres": "PostgreSQL",
    "sql": "SQL",
    "rest": "REST",
    "api": "API",
    "git": "Git",
    "docker": "Docker",
    "aws": "AWS",
    "azure": "Azure",
}

MAX_REQUIRED_SKILLS = 5

_OPENER_RE = re.compile(r"^(" + "|".join(QUESTION_OPENERS) + r")\b", re.IGNORECASE)
_NUMERIC_QUESTION_RE = re.compile(r"^\s*\d+\?\s*$")
_FIRST_QUESTION_RE = re.compile(r"[^?]*\?")
_SENTENCE_BREAK_RE = re.compile(r"(?<=[.!])\s+")

_TITLE_PHRASE_RE = re.compile(
    r"\b([A-Z][a-z0-9]{2,}\s+[A-Z][a-z0-9]{2,}(?:\s+[A-Z][a-z0-9]{2,}){0,2})\b"
)
_ACRONYM_RE = re.compile(r"\b([A-Z]{4,})\b")

# Capitalised only because they open a sentence
_LEADING_FILLER = set(QUESTION_OPENERS) | {"the", "your", "have", "tell", "give", "share"}

_MARKDOWN_RE = re.compile(r"\*\*|__|\*|`|~~|\[|\]|\(|\)")
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE)
_BLOCKQUOTE_RE = re.compile(r"^>\s?", re.MULTILINE)
_LIST_NUMBER_RE = re.compile(r"^[ \t]*(?:\d+[.)\-][ \t]+)+", re.MULTILINE)
_TRAILING_NUMBERED_Q_RE = re.compile(r"(?:[ \t]+\d+)*[ \t]+\d+\?[ \t]*$", re.MULTILINE)
_TRAILING_DIGITS_RE = re.compile(r"(?:[ \t]+\d+)+[ \t]*$", re.MULTILINE)
_LABEL_LINE_RE = re.compile(r"^(answer|summary)\s*[:\-–—]?$", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9\s]")
_MULTI_SPACE_RE = re.compile(r"\s{2,}")

SKIP_PATTERNS = [
    re.compile(r"^(let'?s?\s+)?move\s+on", re.IGNORECASE),
    re.compile(r"^next\s+(question|one)", re.IGNORECASE),
    re.compile(r"^skip\s+(this|it|that)", re.IGNORECASE),
    re.compile(r"^(can\s+we\s+)?go\s+to\s+(the\s+)?next", re.IGNORECASE),
    re.compile(r"^(let'?s?\s+)?proceed", re.IGNORECASE),
    re.compile(r"^(i'?d?\s+)?(like\s+to\s+)?skip", re.IGNORECASE),
    re.compile(r"^another\s+question", re.IGNORECASE),
    re.compile(r"^new\s+question", re.IGNORECASE),
    re.compile(r"^change\s+(the\s+)?(topic|question)", re.IGNORECASE),
]

REPEAT_PATTERNS = [
    re.compile(r"repeat", re.IGNORECASE),
    re.compile(r"say\s+(that\s+)?again", re.IGNORECASE),
    re.compile(r"come\s+again", re.IGNORECASE),
    re.compile(r"didn'?t\s+(hear|understand|get|catch)", re.IGNORECASE),
    re.compile(r"can'?t\s+(hear|understand)", re.IGNORECASE),
    re.compile(r"pardon", re.IGNORECASE),
    re.compile(r"what\s+(did\s+you|was\s+that)", re.IGNORECASE),
    re.compile(r"could\s+you\s+(please\s+)?(repeat|say)", re.IGNORECASE),
    re.compile(r"one\s+more\s+time", re.IGNORECASE),
    re.compile(r"again\s*\??$", re.IGNORECASE),
]

ELABORATE_PATTERNS = [
    re.compile(r"elaborate", re.IGNORECASE),
    re.compile(r"explain\s+(more|further|that)", re.IGNORECASE),
    re.compile(r"clarif(y|ication)", re.IGNORECASE),
    re.compile(r"more\s+(detail|specific|context)", re.IGNORECASE),
    re.compile(r"what\s+do\s+you\s+mean", re.IGNORECASE),
    re.compile(r"can\s+you\s+(be\s+more\s+)?specific", re.IGNORECASE),
    re.compile(r"not\s+sure\s+(what|i)\s+understand", re.IGNORECASE),
    re.compile(r"rephrase", re.IGNORECASE),
    re.compile(r"different\s+way", re.IGNORECASE),
]

# Output that still talks about the candidate's request to change topic
_SKIP_ECHO_RE = re.compile(r"\b(skip\w*|move\s+on|moving\s+on)\b", re.IGNORECASE)


# ==================== Word helpers ====================

def word_count(text: Optional[str]) -> int:
    return len((text or "").split())


def clamp_words(text: Optional[str], max_words: int = 200) -> str:
    """Keep at most `max_words` whitespace-separated words."""
    if not text:
        return ""
    words = str(text).split()
    if len(words) <= max_words:
        return str(text).strip()
    return " ".join(words[:max_words])


# ==================== Question shape ====================

def is_valid_question(text: Optional[str]) -> bool:
    """
    Check that text looks like a single interview question.

    Requires a trailing "?", at least three words and an interrogative or
    request opener. Bare numeric questions such as "1?" are rejected.
    """
    if not text:
        return False
    s = str(text).strip()
    if not s.endswith("?"):
        return False
    if _NUMERIC_QUESTION_RE.match(s):
        return False
    if word_count(s) < 3:
        return False
    return bool(_OPENER_RE.match(s))


def is_answer_like(text: Optional[str]) -> bool:
    """True when the text opens like a first-person answer rather than a question."""
    if not text:
        return False
    s = str(text).strip().lower()
    return s.startswith(ANSWER_LIKE_PREFIXES)


def has_non_question_before(text: Optional[str]) -> bool:
    """Sentence-ending punctuation appears before the first "?"."""
    s = text or ""
    first_q = s.find("?")
    if first_q == -1:
        return False
    return bool(re.search(r"[.!]", re.sub(r"\s+", "", s[:first_q])))


def has_extra_after(text: Optional[str]) -> bool:
    """Non-whitespace content follows the first "?"."""
    s = text or ""
    first_q = s.find("?")
    if first_q == -1:
        return False
    return bool(s[first_q + 1:].strip())


def mentions_skip(text: Optional[str]) -> bool:
    return bool(_SKIP_ECHO_RE.search(text or ""))


def check_format(raw_text: Optional[str]) -> Dict[str, bool]:
    """
    Run the format checks on raw model output.

    Returns:
        Dict of individual verdicts plus "passed"
    """
    s = (raw_text or "").strip()
    verdicts = {
        "ends_with_question": s.endswith("?"),
        "has_non_question_before": has_non_question_before(s),
        "has_extra_after": has_extra_after(s),
        "answer_like": is_answer_like(s),
    }
    verdicts["passed"] = (
        verdicts["ends_with_question"]
        and not verdicts["has_non_question_before"]
        and not verdicts["has_extra_after"]
        and not verdicts["answer_like"]
    )
    return verdicts


def extract_question_clause(text: Optional[str]) -> str:
    """
    Return the sentence that ends at the first "?", dropping any preamble.

    "I built X. What about Y?" -> "What about Y?"
    """
    s = (text or "").strip()
    first_q = s.find("?")
    if first_q == -1:
        return ""
    parts = _SENTENCE_BREAK_RE.split(s[:first_q + 1])
    return parts[-1].strip()


def enforce_question_only(text: Optional[str], max_words: int = 60) -> str:
    """
    Reduce text to its first question, capped at `max_words`.

    Falls back to the first sentence when no "?" is present; the result always
    ends with "?" unless the input is empty.
    """
    if not text:
        return ""
    s = str(text).strip()
    match = _FIRST_QUESTION_RE.search(s)
    candidate = match.group(0) if match else re.split(r"[.!]", s)[0]
    candidate = clamp_words(candidate.strip(), max_words)
    candidate = candidate.rstrip(" \t\n.!,;:")
    if not candidate or not candidate.strip("?"):
        return ""
    if not candidate.endswith("?"):
        candidate += "?"
    return candidate


def trim_to_question(raw_text: Optional[str], max_words: int = 60) -> str:
    """Best-effort cleanup of model output into a single question clause."""
    clamped = clamp_words(raw_text, 200)
    clause = extract_question_clause(clamped) or clamped
    return enforce_question_only(clause, max_words)


# ==================== Hallucination ====================

def _strip_leading_filler(phrase: str) -> str:
    words = phrase.split()
    while words and words[0].lower() in _LEADING_FILLER:
        words.pop(0)
    return " ".join(words) if len(words) >= 2 else ""


def detect_hallucinated_entities(
    text: Optional[str],
    allowed_context: Optional[str]
) -> Union[bool, List[str]]:
    """
    Find proper-noun-like phrases that the model was never shown.

    Title-Case runs of two to four words and all-caps acronyms of four or more
    letters are collected from `text`; any that do not appear (case-insensitive)
    in `allowed_context` are reported. This is a regex heuristic, not NER.

    Returns:
        False when nothing suspicious is found, else the list of phrases
    """
    if not text or not allowed_context:
        return False

    allowed = allowed_context.lower()
    unknown: List[str] = []

    candidates = [_strip_leading_filler(m) for m in _TITLE_PHRASE_RE.findall(text)]
    candidates += _ACRONYM_RE.findall(text)

    for phrase in candidates:
        if not phrase or phrase in unknown:
            continue
        if phrase.lower() not in allowed:
            unknown.append(phrase)

    return unknown or False


# ==================== Sanitization ====================

def _keep_line(line: str) -> bool:
    if not line:
        return False
    if _LABEL_LINE_RE.match(line):
        return False
    if word_count(line) <= 2 and len(line) < 25 and _NON_ALNUM_RE.search(line):
        return False
    return True


def _sanitize_once(text: str) -> str:
    s = _MARKDOWN_RE.sub("", text)
    s = _HTML_TAG_RE.sub("", s)
    s = _HEADING_RE.sub("", s)
    s = _BLOCKQUOTE_RE.sub("", s)
    s = _LIST_NUMBER_RE.sub("", s)
    s = _TRAILING_NUMBERED_Q_RE.sub("", s)
    s = _TRAILING_DIGITS_RE.sub("", s)
    lines = [line.strip() for line in s.splitlines()]
    s = "\n".join(line for line in lines if _keep_line(line))
    return _MULTI_SPACE_RE.sub(" ", s).strip()


def strip_markup(text: Optional[str]) -> str:
    """Remove markdown and HTML from a short field without dropping any line."""
    if not text:
        return ""
    s = _HTML_TAG_RE.sub("", _MARKDOWN_RE.sub("", str(text)))
    return re.sub(r"\s+", " ", s).strip()


def sanitize_text(text: Optional[str]) -> str:
    """
    Remove markdown, HTML and structural noise from text.

    Every pass only deletes characters or collapses whitespace, so repeating
    it until nothing changes terminates and makes the result idempotent.
    """
    if not text:
        return ""
    current = str(text)
    while True:
        cleaned = _sanitize_once(current)
        if cleaned == current:
            return cleaned
        current = cleaned


# ==================== Similarity ====================

def normalize_for_compare(text: Optional[str]) -> str:
    s = (text or "").lower()
    s = re.sub(r"[^a-z0-9\s]", "", s)
    return re.sub(r"\s+", " ", s).strip()


def overlap_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Jaccard similarity of the two word sets, 0.0 when either is empty."""
    if not a or not b:
        return 0.0
    words_a = set(a.split())
    words_b = set(b.split())
    if not words_a or not words_b:
        return 0.0
    union = words_a | words_b
    return len(words_a & words_b) / len(union)


def is_repeat(text: Optional[str], recent: Iterable[str], threshold: float = REPEAT_THRESHOLD) -> bool:
    """True when text is a near-duplicate of any of the recent questions."""
    norm = normalize_for_compare(text)
    return any(
        overlap_similarity(norm, normalize_for_compare(q)) >= threshold
        for q in recent if q
    )


# ==================== Extraction ====================

def extract_batch_questions(raw_text: Optional[str], desired_count: int, max_words: int = 60) -> List[str]:
    """
    Split a multi-question response into at most `desired_count` questions.

    Uses the "|||" delimiter when present, otherwise every "?"-terminated
    segment. Items are trimmed to a single question, deduplicated in order,
    and anything that does not end in "?" is dropped.
    """
    if not raw_text or desired_count < 1:
        return []

    if BATCH_DELIMITER in raw_text:
        parts = raw_text.split(BATCH_DELIMITER)
    else:
        parts = _FIRST_QUESTION_RE.findall(raw_text)

    questions: List[str] = []
    for part in parts:
        if not part.strip():
            continue
        q = enforce_question_only(clamp_words(part, 200), max_words)
        if not q.endswith("?") or not q.strip("? "):
            continue
        if q not in questions:
            questions.append(q)

    return questions[:desired_count]


def extract_required_skills(job_text: Optional[str]) -> List[str]:
    """
    Pull up to five required skills out of a job description.

    Prefers an explicit "Required skills:" line; otherwise scans for well-known
    technology keywords.
    """
    if not job_text:
        return []

    line = re.search(r"^\s*required skills:\s*(.*)$", job_text, re.IGNORECASE | re.MULTILINE)
    if line and line.group(1).strip() and not re.search(r"not specified", line.group(1), re.IGNORECASE):
        skills = [s.strip() for s in line.group(1).split(",") if s.strip()]
        return skills[:MAX_REQUIRED_SKILLS]

    lower = job_text.lower()
    found = [
        display for keyword, display in TECH_KEYWORDS.items()
        if re.search(r"\b" + re.escape(keyword) + r"\b", lower)
    ]
    return found[:MAX_REQUIRED_SKILLS]


# ==================== Candidate intent ====================

def is_skip_request(utterance: Optional[str]) -> bool:
    s = (utterance or "").strip().lower()
    return bool(s) and any(p.search(s) for p in SKIP_PATTERNS)


def is_repeat_request(utterance: Optional[str]) -> bool:
    s = (utterance or "").strip().lower()
    if not s or is_skip_request(s):
        return False
    return any(p.search(s) for p in REPEAT_PATTERNS)


def is_elaborate_request(utterance: Optional[str]) -> bool:
    s = (utterance or "").strip().lower()
    if not s or is_skip_request(s):
        return False
    return any(p.search(s) for p in ELABORATE_PATTERNS)
