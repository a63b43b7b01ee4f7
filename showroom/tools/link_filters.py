"""Retailer link sanitizing for generated answers.

The model tends to produce retailer search URLs that are blocked, stale
category ids and placeholder links. Each `LinkRule` describes one family of
URLs and how to repair it; `LinkSanitizer` applies the rules in order.
"""

import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger()

# Characters that end a URL inside markdown or prose
_URL_TAIL = r"[^\s\)\"\]>]"

HOME_DEPOT_LINKS = {
    "main": "https://www.homedepot.com/b/Flooring/N-5yc1vZaq7r",
    "lvp": "https://www.homedepot.com/b/Flooring-Vinyl-Flooring-Vinyl-Plank-Flooring/N-5yc1vZbzjz",
    "vinyl": "https://www.homedepot.com/b/Flooring-Vinyl-Flooring-Vinyl-Plank-Flooring/N-5yc1vZbzjz",
    "laminate": "https://www.homedepot.com/b/Flooring-Laminate-Flooring/N-5yc1vZare1",
    "hardwood": "https://www.homedepot.com/b/Flooring-Hardwood-Flooring/N-5yc1vZaq8x",
    "tile": "https://www.homedepot.com/b/Flooring-Tile/N-5yc1vZar0y",
}

LOWES_LINKS = {
    "main": "https://www.lowes.com/c/Flooring",
    "lvp": "https://www.lowes.com/pl/vinyl-flooring/vinyl-plank/4294608591",
    "vinyl": "https://www.lowes.com/c/Vinyl-flooring-Flooring",
    "laminate": "https://www.lowes.com/c/Laminate-Flooring",
    "hardwood": "https://www.lowes.com/pl/flooring/wood/4294934373-4294965554",
    "tile": "https://www.lowes.com/pl/flooring/tile/4294934373-4294965418",
}

FLOOR_AND_DECOR_LINKS = {
    "main": "https://www.flooranddecor.com/",
    "lvp": "https://www.flooranddecor.com/luxury-vinyl-plank-and-tile",
    "vinyl": "https://www.flooranddecor.com/vinyl",
    "laminate": "https://www.flooranddecor.com/laminate-flooring",
    "hardwood": "https://www.flooranddecor.com/hardwood-flooring",
    "tile": "https://www.flooranddecor.com/tile",
    "waterproof": "https://www.flooranddecor.com/waterproof",
}


def detect_flooring_category(text: str) -> str:
    """Guess the flooring category a URL or phrase refers to."""
    lowered = text.lower()
    if "vinyl" in lowered or "lvp" in lowered or "luxury" in lowered:
        return "lvp"
    if "laminate" in lowered:
        return "laminate"
    if "hardwood" in lowered or "wood" in lowered:
        return "hardwood"
    if "tile" in lowered or "ceramic" in lowered or "porcelain" in lowered:
        return "tile"
    return "main"


def _path_and_query(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


@dataclass(frozen=True)
class LinkRule:
    """One family of links and how to repair it.

    The first `rewrites` entry whose substring occurs wins. Otherwise a match
    containing any `keep` substring is left alone, and failing that the
    category detected from the match's path and query is looked up in
    `links`. The host never selects a category.
    """

    name: str
    pattern: re.Pattern
    links: dict[str, str]
    keep: tuple[str, ...] = ()
    rewrites: tuple[tuple[str, str], ...] = ()
    detect_category: bool = True

    def repair(self, url: str) -> str:
        for marker, replacement in self.rewrites:
            if marker in url:
                return replacement
        if any(marker in url for marker in self.keep):
            return url
        category = detect_flooring_category(_path_and_query(url)) if self.detect_category else "main"
        return self.links.get(category) or self.links["main"]


def _url_pattern(prefix: str) -> re.Pattern:
    return re.compile(rf"https?://(?:www\.)?{prefix}{_URL_TAIL}*", re.IGNORECASE)


RETAILER_LINK_RULES: tuple[LinkRule, ...] = (
    # Search pages answer "Access Denied"
    LinkRule(
        name="home_depot_search",
        pattern=_url_pattern(r"homedepot\.com/s/"),
        links=HOME_DEPOT_LINKS,
    ),
    LinkRule(
        name="home_depot_category",
        pattern=_url_pattern(r"homedepot\.com/b/"),
        links=HOME_DEPOT_LINKS,
        keep=("N-5yc1vZbzjz", "N-5yc1vZare1", "N-5yc1vZaq8x", "N-5yc1vZar0y", "N-5yc1vZaq7r"),
    ),
    # Retired 4294858* category ids
    LinkRule(
        name="lowes_stale_listing",
        pattern=re.compile(
            rf"https?://(?:www\.)?lowes\.com/pl/{_URL_TAIL}*4294858[0-9]+{_URL_TAIL}*",
            re.IGNORECASE,
        ),
        links=LOWES_LINKS,
    ),
    LinkRule(
        name="lowes_category",
        pattern=_url_pattern(r"lowes\.com/c/"),
        links=LOWES_LINKS,
        keep=("Flooring", "flooring", "Laminate", "Vinyl"),
    ),
    LinkRule(
        name="floor_and_decor",
        pattern=_url_pattern(r"flooranddecor\.com/"),
        links=FLOOR_AND_DECOR_LINKS,
        rewrites=(
            ("luxury-vinyl-plank-and-tile-floor", FLOOR_AND_DECOR_LINKS["lvp"]),
            ("vinyl-flooring", FLOOR_AND_DECOR_LINKS["vinyl"]),
        ),
        keep=(
            "/luxury-vinyl-plank-and-tile", "/vinyl", "/laminate-flooring",
            "/hardwood-flooring", "/tile", "/waterproof",
        ),
    ),
    LinkRule(
        name="example_placeholder",
        pattern=re.compile(rf"https?://(?:www\.)?example\.com{_URL_TAIL}*", re.IGNORECASE),
        links=FLOOR_AND_DECOR_LINKS,
        detect_category=False,
    ),
    LinkRule(
        name="bracket_placeholder",
        pattern=re.compile(r"\[(?:product[- ]?link|link|url|click here|insert link)\]", re.IGNORECASE),
        links=FLOOR_AND_DECOR_LINKS,
        detect_category=False,
    ),
)


@dataclass
class LinkSanitizer:
    """Applies link rules, in order, to generated markdown."""

    rules: tuple[LinkRule, ...] = field(default=RETAILER_LINK_RULES)

    def sanitize(self, text: Optional[str]) -> str:
        if not text:
            return text or ""

        repaired = 0
        for rule in self.rules:
            def _replace(match: re.Match, rule: LinkRule = rule) -> str:
                nonlocal repaired
                original = match.group(0)
                fixed = rule.repair(original)
                if fixed != original:
                    repaired += 1
                return fixed

            text = rule.pattern.sub(_replace, text)

        if repaired:
            logger.info("links_sanitized", repaired=repaired)
        return text
