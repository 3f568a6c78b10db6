from typing import Iterable, Protocol


class RankableComment(Protocol):
    content: str
    upvotes: int
    downvotes: int
    created_at: object


def net_score(comment: RankableComment) -> int:
    return (comment.upvotes or 0) - (comment.downvotes or 0)


def rank_comments(comments: Iterable[RankableComment]) -> list:
    """
    Order comments by net score, highest first; equal scores put the newest
    comment first. Returns a new list and leaves the input untouched.
    """
    return sorted(
        comments,
        key=lambda comment: (net_score(comment), comment.created_at),
        reverse=True,
    )


def top_comment_texts(comments: Iterable[RankableComment], limit: int) -> list[str]:
    """Stripped texts of the best-ranked comments, skipping blank ones."""
    texts = []
    for comment in rank_comments(comments):
        if len(texts) >= limit:
            break
        text = (comment.content or "").strip()
        if text:
            texts.append(text)
    return texts
