"""Step 03 — Seed Comments: populate demo feedback on loaded parcels."""

import logging
import random
import sys
from datetime import datetime, timedelta

from steps import open_store

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

STAGE = "seed_comments"

COMMENT_TEMPLATES = [
    # Parks & Recreation
    "This would be perfect for a community park! We really need more green space in this area.",
    "A playground here would be amazing for the kids in the neighborhood.",
    "I'd love to see a dog park here. There aren't many places for dogs to run around nearby.",
    "A community garden would be fantastic! We could grow fresh vegetables and bring neighbors together.",
    "This spot would make a great basketball court or sports field.",
    # Community Spaces
    "A community center would be wonderful here - we need a place for events and gatherings.",
    "This could be a great location for a farmers market on weekends.",
    "A community meeting space would help bring residents together.",
    # Food & Retail
    "A local cafe would be perfect here! We need more places to grab coffee and work.",
    "A small grocery store would be so convenient for residents.",
    "We need a pharmacy nearby - this would be a great location.",
    # Housing
    "Affordable housing would really help the community here.",
    "Mixed-use development with shops and apartments would be ideal.",
    "Senior housing would be great - we need more options for older residents.",
    # Safety & Infrastructure
    "Better lighting and security would make this area safer.",
    "A parking lot would help with the parking issues in this neighborhood.",
    "Traffic speeds through here are dangerous, we need speed bumps and crosswalks.",
    "A bike-sharing station would encourage sustainable transportation.",
    "The bus stop nearby needs a shelter and the route should run more often.",
    # General
    "This vacant lot has so much potential! I hope something positive happens here soon.",
    "It would be great to see this space put to good use for the community.",
    "I've been hoping something would be built here - it's been empty for too long.",
]

PREFIXES = ["I think", "In my opinion", "Honestly,", "Maybe", ""]

SUFFIXES = ["!", ".", " What do others think?", " Anyone else agree?", " Let's make it happen!"]


def generate_comment(rng: random.Random) -> str:
    template = rng.choice(COMMENT_TEMPLATES)
    prefix = rng.choice(PREFIXES)
    suffix = rng.choice(SUFFIXES)

    body = template.rstrip(".!")
    if prefix and rng.random() > 0.5:
        return f"{prefix} {body[0].lower()}{body[1:]}{suffix}"
    return f"{body}{suffix}"


def random_upvotes(rng: random.Random) -> int:
    # Most comments get 0-5 upvotes, some get more
    roll = rng.random()
    if roll < 0.6:
        return rng.randint(0, 5)
    if roll < 0.9:
        return rng.randint(5, 19)
    return rng.randint(20, 49)


def random_downvotes(rng: random.Random, upvotes: int) -> int:
    max_downvotes = max(1, int(upvotes * 0.7))
    return rng.randint(0, max_downvotes - 1)


def build_seed_comments(
    parcel_ids: list[int],
    rng: random.Random,
    min_comments: int = 0,
    max_comments: int = 5,
    num_authors: int = 25,
) -> list[dict]:
    now = datetime.now()
    comments = []
    for parcel_id in parcel_ids:
        for _ in range(rng.randint(min_comments, max_comments)):
            upvotes = random_upvotes(rng)
            comments.append(
                {
                    "parcel_id": parcel_id,
                    "author_id": rng.randint(1, num_authors),
                    "content": generate_comment(rng),
                    "upvotes": upvotes,
                    "downvotes": random_downvotes(rng, upvotes),
                    "created_at": now - timedelta(minutes=rng.randint(0, 60 * 24 * 90)),
                }
            )
    return comments


def run(config: dict) -> int:
    """Attach a random handful of comments to the first N parcels."""
    seed_config = config.get("seed_comments", {})
    num_parcels = seed_config.get("num_parcels", 200)
    rng = random.Random(seed_config.get("seed", 42))

    store = open_store(config)
    parcel_ids = [parcel.id for parcel in store.list_parcels()][:num_parcels]
    if not parcel_ids:
        logger.warning("No parcels found! Load parcels before seeding comments.")
        return 0

    comments = build_seed_comments(
        parcel_ids,
        rng,
        min_comments=seed_config.get("min_comments_per_parcel", 0),
        max_comments=seed_config.get("max_comments_per_parcel", 5),
    )
    created = store.add_comments(comments)
    logger.info(f"Seeded {created} comments across {len(parcel_ids)} parcels")
    return created
