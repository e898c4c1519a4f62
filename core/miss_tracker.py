"""
Smart Miss Tracker

Looks at the words no rule consumed during a compression call and logs only
the ones that could plausibly become useful compression rules: long or
domain-specific words and a whitelist of common multi-word idioms.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Set

from .models import AppliedRule, Token
from .pattern_store import PatternStore

logger = logging.getLogger(__name__)

__all__ = ["SmartMissTracker", "SmartMissResult", "SKIP_WORDS", "HIGH_VALUE_PATTERNS"]

SKIP_WORDS = frozenset({
    # Articles
    'a', 'an', 'the',
    # Prepositions
    'for', 'to', 'at', 'in', 'on', 'of', 'by', 'with', 'from', 'up', 'out', 'off',
    # Common verbs
    'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    # Pronouns
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'me', 'him', 'her', 'us', 'them',
    # Connectors
    'and', 'or', 'but', 'so', 'if', 'as', 'that', 'this', 'these', 'those',
    # Very short
    'am', 'my', 'no', 'go',
    # Question words
    'who', 'what', 'when', 'where', 'why', 'how',
    # Time markers
    'now', 'then', 'here', 'there',
})

HIGH_VALUE_PATTERNS: Dict[str, "re.Pattern"] = {
    'Tech term': re.compile(
        r'^(blockchain|kubernetes|cryptocurrency|javascript|typescript|database|algorithm|optimization'
        r'|authentication|deployment|infrastructure|microservices|containerization|orchestration|scalability)$',
        re.IGNORECASE),
    'Long common word': re.compile(
        r'^(definitely|probably|something|everything|anything|nothing|someone|everyone|anyone|tomorrow'
        r'|tonight|yesterday|because|through|without|between|understand|remember|important|necessary'
        r'|different|beautiful|wonderful|excellent|fantastic)$',
        re.IGNORECASE),
    'Business term': re.compile(
        r'^(management|development|marketing|strategy|analysis|implementation|integration|configuration'
        r'|documentation|presentation|communication|collaboration|optimization|efficiency|productivity)$',
        re.IGNORECASE),
    'Abbreviable word': re.compile(
        r'^(please|document|application|information|technology|government|organization|administration'
        r'|environment|development|management|department|university|community|individual|professional'
        r'|commercial|international|educational|traditional)$',
        re.IGNORECASE),
}

LONG_WORD_LENGTH = 8
MIN_WORD_LENGTH = 4

_HIGH_VALUE_PHRASES = [
    'right now', 'good idea', 'figure out', 'find out', 'check out',
    'let me know', 'make sure', 'as well', 'at all', 'of course',
    'by the way', 'in order', 'a lot', 'kind of', 'sort of',
    'as soon as', 'as much as', 'as long as', 'such as',
    'thank you', 'see you', 'talk to', 'going to', 'want to',
    'need to', 'have to', 'able to', 'used to', 'trying to',
]
HIGH_VALUE_PHRASE_PATTERNS = [
    re.compile(r'\b' + re.escape(phrase) + r'\b', re.IGNORECASE) for phrase in _HIGH_VALUE_PHRASES
]

_NON_WORD_RE = re.compile(r'\d|[^\w\s]')


@dataclass
class SmartMissResult:
    words_logged: int = 0
    phrases_logged: int = 0
    words_skipped: int = 0
    phrases_skipped: int = 0
    logged_items: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "wordsLogged": self.words_logged,
            "phrasesLogged": self.phrases_logged,
            "wordsSkipped": self.words_skipped,
            "phrasesSkipped": self.phrases_skipped,
            "loggedItems": list(self.logged_items),
        }


def get_word_value_reason(word: str) -> str:
    for reason, pattern in HIGH_VALUE_PATTERNS.items():
        if pattern.match(word):
            return reason
    if len(word) >= LONG_WORD_LENGTH:
        return f'Long word ({LONG_WORD_LENGTH}+ chars)'
    return ''


def is_high_value_word(word: str) -> bool:
    return bool(get_word_value_reason(word))


def should_skip_phrase(words: List[str]) -> bool:
    """Reject phrases with digits/punctuation, only stop words, or inner proper nouns."""
    phrase = ' '.join(words)
    if _NON_WORD_RE.search(phrase):
        return True
    if len(words) > 3:
        return True
    if all(word.lower() in SKIP_WORDS for word in words):
        return True
    if any(len(word) > 1 and word[0].isupper() for word in words[1:]):
        return True
    return False


def is_high_value_phrase(phrase: str) -> bool:
    word_count = len(phrase.split())
    if word_count < 2 or word_count > 3:
        return False
    return any(pattern.search(phrase) for pattern in HIGH_VALUE_PHRASE_PATTERNS)


class SmartMissTracker:
    """Filters and logs uncovered vocabulary through a pattern store."""

    def __init__(self, store: PatternStore, require_high_value_words: bool = True):
        """
        Args:
            store: Store receiving the miss upserts
            require_high_value_words: Only log words that pass the high-value check
        """
        self.store = store
        self.require_high_value_words = require_high_value_words

    async def track_misses(self, original_text: str, tokens: Iterable[Token],
                           applied_rules: Iterable[AppliedRule]) -> SmartMissResult:
        """
        Log high-value misses from the tokens left unprocessed.

        Args:
            original_text: Input text, stored as context with each miss
            tokens: Token list after all passes ran
            applied_rules: Rules applied during the call

        Returns:
            SmartMissResult with logged/skipped counters
        """
        result = SmartMissResult()
        applied_texts = {rule.original_text.lower() for rule in applied_rules}

        residual = [token for token in tokens if not token.processed and token.text.strip()]
        words = [token.clean for token in residual]
        display_words = [token.text for token in residual]

        await self._track_words(words, applied_texts, original_text, result)
        await self._track_phrases(words, display_words, applied_texts, original_text, result)

        logger.debug(
            f"📊 Smart Miss Summary: {result.words_logged} words, {result.phrases_logged} phrases logged | "
            f"{result.words_skipped} words, {result.phrases_skipped} phrases skipped"
        )
        return result

    async def _track_words(self, words: List[str], applied_texts: Set[str], original_text: str,
                           result: SmartMissResult):
        for word in dict.fromkeys(words):
            if word in applied_texts:
                continue

            if word in SKIP_WORDS:
                result.words_skipped += 1
                continue

            high_value = is_high_value_word(word)
            if len(word) < MIN_WORD_LENGTH and not high_value:
                result.words_skipped += 1
                continue
            if self.require_high_value_words and not high_value:
                result.words_skipped += 1
                continue

            reason = get_word_value_reason(word) or 'Uncovered word'
            try:
                await self.store.log_miss(word, 'word', [original_text])
            except Exception as e:
                logger.error(f"❌ Failed to log word '{word}': {e}")
                continue
            result.words_logged += 1
            result.logged_items.append({'text': word, 'type': 'word', 'reason': reason})
            logger.debug(f"✅ Logged high-value word: '{word}' ({reason})")

    async def _track_phrases(self, words: List[str], display_words: List[str], applied_texts: Set[str],
                             original_text: str, result: SmartMissResult):
        candidates: Dict[str, List[str]] = {}
        for size in (2, 3):
            for i in range(len(words) - size + 1):
                phrase = ' '.join(words[i:i + size])
                candidates.setdefault(phrase, display_words[i:i + size])

        for phrase, display in candidates.items():
            if phrase in applied_texts:
                continue

            if should_skip_phrase(display) or not is_high_value_phrase(phrase):
                result.phrases_skipped += 1
                continue

            try:
                await self.store.log_miss(phrase, 'phrase', [original_text])
            except Exception as e:
                logger.error(f"❌ Failed to log phrase '{phrase}': {e}")
                continue
            result.phrases_logged += 1
            result.logged_items.append({'text': phrase, 'type': 'phrase', 'reason': 'High-value phrase pattern'})
            logger.debug(f"✅ Logged high-value phrase: '{phrase}'")
