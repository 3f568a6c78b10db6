import re

# English function words plus filler that shows up in nearly every comment
STOPWORDS = frozenset(
    [
        "the", "and", "to", "a", "of", "in", "is", "for", "on", "we", "i",
        "it", "with", "that", "this", "are", "be", "as", "was", "but", "have",
        "has", "you", "they", "our", "your", "their", "there", "here", "would",
        "could", "should", "will", "can", "just", "more", "some", "any", "not",
        "from", "about", "what", "when", "which", "who", "also", "very", "too",
        "so", "than", "then", "them", "these", "those", "been", "were", "its",
        "into", "out", "all", "one", "like", "really", "get", "see", "love",
        "think", "hope", "wish", "maybe", "great", "make", "lot", "area",
        "else", "others", "anyone", "agree", "let", "lets", "put", "use",
        "being", "much", "many", "need", "needs", "want", "perfect", "place",
        "spot", "nearby", "people", "something", "whatever", "well",
    ]
)

MIN_TOKEN_LENGTH = 3

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


def tokenize(text: str) -> list[str]:
    """Lowercase, replace non-alphanumerics with spaces and split on whitespace."""
    if not text:
        return []
    cleaned = _NON_ALPHANUMERIC.sub(" ", str(text).lower())
    return cleaned.split()


def filter_stopwords(text: str) -> str:
    """Return the text with stopwords and tokens shorter than three characters removed."""
    return " ".join(
        token
        for token in tokenize(text)
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    )


def theme_tokens(text: str) -> list[str]:
    return filter_stopwords(text).split()
