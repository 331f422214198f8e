"""Text tools: statistics, keywords, case transforms and extraction."""

import logging
import re
from collections import Counter

from tools.base_tool import Tool, ToolParameter


logger = logging.getLogger(__name__)

POSITIVE_WORDS = (
    "good", "great", "excellent", "amazing", "wonderful", "love", "like",
    "happy", "fantastic", "awesome", "brilliant", "perfect",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "hate", "horrible", "sad", "angry",
    "disappointed", "worst", "ugly", "stupid",
)

STOP_WORDS = frozenset("""
    the a an and or but in on at to for of with by is are was were be been
    being have has had do does did will would could should may might must can
    this that these those i you he she it we they me him her us them my your
    his its our their myself yourself himself herself itself ourselves
    yourselves themselves what which who when where why how all any both each
    few more most other some such no nor not only own same so than too very
    just now
""".split())

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")
KEYWORD_PATTERN = re.compile(r"\b[a-zA-Z]{3,}\b")
SENTENCE_SPLIT = re.compile(r"[.!?]+")
PARAGRAPH_SPLIT = re.compile(r"\r\n\r\n|\n\n")

CASE_TYPES = ("upper", "lower", "title", "sentence", "alternating")

_TEXT = "string"


class AnalyzeTextTool(Tool):
    name = "analyze_text"
    description = (
        "Analyzes text and provides statistics like word count, character count, "
        "and basic sentiment"
    )
    plugin = "Text"
    parameters = (ToolParameter("text", _TEXT, "Text to analyze"),)

    async def execute(self, text: str = "", **kwargs) -> str:
        if not text.strip():
            return "No text provided to analyze."

        clean = text.strip()
        words = clean.split()
        sentences = [s for s in SENTENCE_SPLIT.split(clean) if s.strip()]
        paragraphs = [p for p in PARAGRAPH_SPLIT.split(clean) if p]

        lowered = clean.lower()
        positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
        negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)
        if positive > negative:
            sentiment = "Positive"
        elif negative > positive:
            sentiment = "Negative"
        else:
            sentiment = "Neutral"

        average = round(len(words) / len(sentences), 1) if sentences else 0

        logger.info("Analyzed %d words", len(words))
        return (
            "Text Analysis Results:\n"
            f"   • Words: {len(words)}\n"
            f"   • Characters: {len(clean)}\n"
            f"   • Characters (no spaces): {len(clean.replace(' ', ''))}\n"
            f"   • Sentences: {len(sentences)}\n"
            f"   • Paragraphs: {len(paragraphs)}\n"
            f"   • Basic Sentiment: {sentiment}\n"
            f"   • Average words per sentence: {average}"
        )


class ExtractKeywordsTool(Tool):
    name = "extract_keywords"
    description = (
        "Extracts key words from text by removing common stop words and showing frequency"
    )
    plugin = "Text"
    parameters = (
        ToolParameter("text", _TEXT, "Text to extract keywords from"),
        ToolParameter(
            "max_keywords", "integer", "Maximum number of keywords to return",
            required=False, default=10,
        ),
    )

    async def execute(self, text: str = "", max_keywords: int = 10, **kwargs) -> str:
        if not text.strip():
            return "No text provided for keyword extraction."

        words = [
            w for w in KEYWORD_PATTERN.findall(text.lower())
            if w not in STOP_WORDS
        ]
        # most_common keeps first-seen order among equal counts
        top = Counter(words).most_common(max(max_keywords, 0))

        logger.info("Extracted %d keywords", len(top))
        if not top:
            return "No significant keywords found."
        items = "\n   • ".join(f"{word} ({count})" for word, count in top)
        return f"Top {len(top)} Keywords:\n   • {items}"


class TransformCaseTool(Tool):
    name = "transform_case"
    description = (
        "Transforms text to different cases: upper, lower, title, sentence, or alternating"
    )
    plugin = "Text"
    parameters = (
        ToolParameter("text", _TEXT, "Text to transform"),
        ToolParameter(
            "case_type", _TEXT,
            "Transformation type: upper, lower, title, sentence, alternating",
            required=False, default="upper",
        ),
    )

    async def execute(self, text: str = "", case_type: str = "upper", **kwargs) -> str:
        if not text.strip():
            return "No text provided for transformation."

        result = transform_case(text, case_type)
        logger.info("Transformed text to %s case", case_type)
        return f"Transformed to {case_type} case: {result}"


def transform_case(text: str, case_type: str) -> str:
    """Apply a named case transform. Unknown names leave the text unchanged."""
    kind = case_type.lower()
    if kind == "upper":
        return text.upper()
    if kind == "lower":
        return text.lower()
    if kind == "title":
        return text.lower().title()
    if kind == "sentence":
        return text[:1].upper() + text[1:].lower()
    if kind == "alternating":
        return "".join(c.upper() if i % 2 == 0 else c.lower() for i, c in enumerate(text))
    return text


class CountOccurrencesTool(Tool):
    name = "count_occurrences"
    description = "Counts how many times a word or phrase appears in text"
    plugin = "Text"
    parameters = (
        ToolParameter("text", _TEXT, "Text to search in"),
        ToolParameter("search_term", _TEXT, "Word or phrase to count"),
        ToolParameter(
            "case_sensitive", "boolean", "Whether the search should be case sensitive",
            required=False, default=False,
        ),
    )

    async def execute(
        self,
        text: str = "",
        search_term: str = "",
        case_sensitive: bool = False,
        **kwargs,
    ) -> str:
        if not text.strip() or not search_term.strip():
            return "Both text and search term must be provided."

        if case_sensitive:
            count = text.count(search_term)
        else:
            count = text.lower().count(search_term.lower())

        result = f"The term '{search_term}' appears {count} time(s) in the text."
        logger.info(result)
        return result


class ExtractEmailsTool(Tool):
    name = "extract_emails"
    description = "Extracts email addresses from text"
    plugin = "Text"
    parameters = (ToolParameter("text", _TEXT, "Text to extract emails from"),)

    async def execute(self, text: str = "", **kwargs) -> str:
        if not text.strip():
            return "No text provided for email extraction."

        emails = list(dict.fromkeys(EMAIL_PATTERN.findall(text)))
        logger.info("Extracted %d email addresses", len(emails))
        if not emails:
            return "No email addresses found in the text."
        items = "\n   • ".join(emails)
        return f"Found {len(emails)} email address(es):\n   • {items}"


class ReverseTextTool(Tool):
    name = "reverse_text"
    description = "Reverses the order of characters in text"
    plugin = "Text"
    parameters = (ToolParameter("text", _TEXT, "Text to reverse"),)

    async def execute(self, text: str = "", **kwargs) -> str:
        if not text.strip():
            return "No text provided to reverse."
        return f"Reversed text: {text[::-1]}"


def text_tools() -> list[Tool]:
    """All text tools, in listing order."""
    return [
        AnalyzeTextTool(),
        ExtractKeywordsTool(),
        TransformCaseTool(),
        CountOccurrencesTool(),
        ExtractEmailsTool(),
        ReverseTextTool(),
    ]
