"""Genre → HSL color mapping for cluster coloring.

Cluster colors come from the dominant centroid tag.  A tag that contains a
known genre keyword ("post-rock" contains "rock") takes that genre's color;
anything else gets a stable hue derived from a 31-multiplier string hash so
the same tag always renders in the same color across runs.
"""

from __future__ import annotations

from stellar.models.universe import HSLColor

# Insertion order matters: the first key contained in the tag wins, so
# "k-pop" tags resolve to the "pop" entry.
GENRE_COLOR_MAP: dict[str, HSLColor] = {
    "rock": HSLColor(h=10, s=80, l=55),
    "metal": HSLColor(h=0, s=75, l=45),
    "electronic": HSLColor(h=195, s=85, l=55),
    "dance": HSLColor(h=185, s=80, l=50),
    "hip-hop": HSLColor(h=270, s=70, l=55),
    "rap": HSLColor(h=275, s=65, l=50),
    "pop": HSLColor(h=330, s=80, l=60),
    "jazz": HSLColor(h=35, s=75, l=55),
    "blues": HSLColor(h=25, s=70, l=50),
    "classical": HSLColor(h=230, s=40, l=70),
    "country": HSLColor(h=140, s=60, l=50),
    "folk": HSLColor(h=130, s=50, l=55),
    "r&b": HSLColor(h=280, s=60, l=50),
    "soul": HSLColor(h=290, s=55, l=55),
    "indie": HSLColor(h=165, s=65, l=55),
    "alternative": HSLColor(h=170, s=60, l=50),
    "latin": HSLColor(h=45, s=85, l=55),
    "reggae": HSLColor(h=120, s=65, l=45),
    "punk": HSLColor(h=350, s=75, l=50),
    "k-pop": HSLColor(h=310, s=80, l=60),
}

DEFAULT_COLOR = HSLColor(h=220, s=50, l=60)

_HASH_MASK = 0xFFFFFFFF


def string_hash(text: str) -> int:
    """Unsigned 32-bit ``hash * 31 + ord(c)`` hash of *text*.

    Shared by the color fallback and the layout's deterministic initial
    cluster positions.
    """
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & _HASH_MASK
    return value


def color_for_tag(tag: str | None) -> HSLColor:
    """Return the HSL color for a cluster whose dominant tag is *tag*."""
    if not tag:
        return DEFAULT_COLOR

    for genre, color in GENRE_COLOR_MAP.items():
        if genre in tag:
            return color

    return HSLColor(h=string_hash(tag) % 360, s=55, l=55)
