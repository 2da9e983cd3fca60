"""Static content served by the fun commands."""

import json
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, TypeVar

logger = logging.getLogger("moodioos.content")

T = TypeVar("T")

COMPLIMENTS = [
    "You make every room brighter just by being in it.",
    "Your kindness is a gift to everyone around you.",
    "You handle hard days with more grace than you realize.",
    "The world is better with you in it.",
    "You are stronger than whatever today throws at you.",
    "Your curiosity is contagious.",
    "Someone smiled today because of you.",
    "You are doing better than you think.",
]


@dataclass(frozen=True)
class MusicRecommendation:
    name: str
    description: str
    artists: tuple[str, ...]
    vibe: str
    emoji: str


MUSIC_RECOMMENDATIONS = [
    MusicRecommendation(
        name="Lofi Hip Hop",
        description="Mellow beats to relax, study or unwind to.",
        artists=("Nujabes", "J Dilla", "Idealism"),
        vibe="Calm and cozy",
        emoji="🎧",
    ),
    MusicRecommendation(
        name="Lofi Hip Hop Chill",
        description="Slow, warm loops for late evenings.",
        artists=("Tomppabeats", "Jinsang", "eevee"),
        vibe="Sleepy and soft",
        emoji="🌙",
    ),
    MusicRecommendation(
        name="Lo-Fi Jazz",
        description="Dusty jazz samples over laid-back drums.",
        artists=("Kiefer", "Knxwledge", "Saib"),
        vibe="Smooth and warm",
        emoji="🎷",
    ),
    MusicRecommendation(
        name="Indie Pop",
        description="Bright melodies and feel-good hooks.",
        artists=("Clairo", "Rex Orange County", "Still Woozy"),
        vibe="Sunny and upbeat",
        emoji="🌻",
    ),
]

MUSIC_GENRES = {
    "lofi": "Lofi Hip Hop",
    "lo-fi jazz": "Lo-Fi Jazz",
    "indie pop": "Indie Pop",
}


def pick(items: Sequence[T]) -> Optional[T]:
    """Pick a random item, or None from an empty sequence."""
    if not items:
        return None
    return random.choice(items)


def recommendations_for(genre: str) -> list[MusicRecommendation]:
    """Recommendations whose name contains the genre (case-insensitive)."""
    needle = genre.lower()
    return [rec for rec in MUSIC_RECOMMENDATIONS if needle in rec.name.lower()]


def load_gifs(path: Path, key: str) -> list[str]:
    """Load a list of GIF URLs stored under `key` in a JSON file.

    A missing or unreadable file yields an empty list.
    """
    if not path.exists():
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load GIFs from {path}: {e}")
        return []
    gifs = data.get(key, []) if isinstance(data, dict) else []
    return [url for url in gifs if isinstance(url, str) and url]
