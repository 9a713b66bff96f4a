import logging, re

log = logging.getLogger("classifier")

GENERATE = "generate"
CHAT     = "chat"

GENERATION_KEYWORDS = [
    "create", "build", "make", "generate", "design", "develop", "implement",
    "new app", "landing", "dashboard", "todo", "portfolio", "blog",
]
QUESTION_KEYWORDS = [
    "how", "what", "why", "explain", "help", "debug", "fix", "error", "problem",
]


def _pattern(words) -> re.Pattern:
    alts = "|".join(re.escape(w).replace(r"\ ", r"\s+") for w in words)
    return re.compile(rf"\b(?:{alts})\b", re.IGNORECASE)


_GEN_RE  = _pattern(GENERATION_KEYWORDS)
_CHAT_RE = _pattern(QUESTION_KEYWORDS)


def classify_intent(prompt: str, default: str = CHAT) -> str:
    """
    Keyword-based intent classification. No LLM call, instant.
    Whichever keyword class shows up first in the prompt wins; a tie (same
    position) goes to chat. `default` applies when neither class matches.
    """
    gen  = _GEN_RE.search(prompt or "")
    chat = _CHAT_RE.search(prompt or "")

    if gen and chat:
        intent = GENERATE if gen.start() < chat.start() else CHAT
    elif gen:
        intent = GENERATE
    elif chat:
        intent = CHAT
    else:
        intent = default
    log.info(f"   🧭 Intent: {intent}")
    return intent
