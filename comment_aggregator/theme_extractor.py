"""
Deterministic comment heuristics: keyword themes, canned planner
recommendations and a naive extractive summary.

This is what the summary endpoints fall back to when the language model is
unavailable, so nothing in here may raise for any list of strings.
"""

import re
from collections import Counter
from typing import Iterable

from pydantic import BaseModel

from utils.nlp_functions import theme_tokens

MAX_THEMES = 10
NUM_RECOMMENDATIONS = 3
THEMES_CHECKED_FOR_RECOMMENDATIONS = 5
SUMMARY_SENTENCES = 3

# Ordered: a theme is assigned to the first topic whose pattern matches it.
TOPIC_RECOMMENDATIONS = [
    (
        "greenspace",
        re.compile(r"park(?!ing)|tree|bench|garden|green|playground|streetscape"),
        "Invest in greenspace and street furniture (trees, benches) to improve neighborhood livability.",
    ),
    (
        "parking",
        re.compile(r"parking"),
        "Introduce targeted parking management: time-limited parking, dedicated loading zones, and enforcement to reduce circling.",
    ),
    (
        "traffic",
        re.compile(r"traffic|through|speed"),
        "Pilot traffic calming measures (e.g., curb extensions, raised crosswalks, speed cushions) to reduce through-traffic and improve safety.",
    ),
    (
        "lighting",
        re.compile(r"light|safe|security"),
        "Improve street lighting and sightlines on poorly lit corridors to increase nighttime safety.",
    ),
    (
        "biking",
        re.compile(r"bik|cycl"),
        "Create and enforce protected bike lanes and add bike parking to encourage cycling and reduce short car trips.",
    ),
    (
        "transit",
        re.compile(r"bus|transit|route"),
        "Increase transit frequency on the affected routes and improve stop amenities to encourage public transport use.",
    ),
]

COMMUNITY_ENGAGEMENT_RECOMMENDATION = (
    "Engage the community with a public workshop to prioritize short-term and long-term interventions."
)

EMPTY_SUMMARY = "Residents have shared feedback on this parcel."

_SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+")


class Theme(BaseModel):
    theme: str
    count: int


def extract_themes(texts: Iterable[str], limit: int = MAX_THEMES) -> list[Theme]:
    """Most frequent non-stopword tokens; ties keep first-seen order."""
    counts: Counter = Counter()
    for text in texts:
        counts.update(theme_tokens(text or ""))
    return [Theme(theme=word, count=count) for word, count in counts.most_common(limit)]


def match_topic(theme: str) -> str | None:
    for topic, pattern, _ in TOPIC_RECOMMENDATIONS:
        if pattern.search(theme):
            return topic
    return None


def recommend_from_themes(themes: list[Theme]) -> list[str]:
    """Exactly three recommendations, one per matched topic, padded with the workshop fallback."""
    recommendation_by_topic = {topic: text for topic, _, text in TOPIC_RECOMMENDATIONS}
    recommendations = []
    seen_topics = set()

    for theme in themes[:THEMES_CHECKED_FOR_RECOMMENDATIONS]:
        topic = match_topic(theme.theme)
        if topic is None or topic in seen_topics:
            continue
        seen_topics.add(topic)
        recommendations.append(recommendation_by_topic[topic])
        if len(recommendations) >= NUM_RECOMMENDATIONS:
            break

    while len(recommendations) < NUM_RECOMMENDATIONS:
        recommendations.append(COMMUNITY_ENGAGEMENT_RECOMMENDATION)
    return recommendations


def extractive_summary(texts: Iterable[str]) -> str:
    """First three sentences of all comments joined together."""
    joined = " ".join(text.strip() for text in texts if text and text.strip())
    sentences = [s.strip() for s in _SENTENCE_BOUNDARY.split(joined) if s.strip()]
    if not sentences:
        return EMPTY_SUMMARY

    summary = ". ".join(sentences[:SUMMARY_SENTENCES])
    if len(sentences) > SUMMARY_SENTENCES:
        summary += "."
    return summary


def heuristic_narrative(texts: list[str]) -> str:
    """Two-sentence "what residents want" text built from themes and the top recommendation."""
    themes = extract_themes(texts)
    recommendation = recommend_from_themes(themes)[0]

    top_words = [theme.theme for theme in themes[:3]]
    if not top_words:
        return f"{EMPTY_SUMMARY} {recommendation}"
    if len(top_words) == 1:
        mentioned = top_words[0]
    else:
        mentioned = ", ".join(top_words[:-1]) + f" and {top_words[-1]}"
    return f"Residents most often mention {mentioned}. {recommendation}"
