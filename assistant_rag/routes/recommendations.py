"""In-app route recommendations extracted from generated answers.

Generated text may reference app pages in three syntaxes:

- ``[text](route)`` markdown links
- ``[ /some/route ]`` bare bracketed paths
- ``<route-link text="T" route="R">label</route-link>`` already-tagged links

Tag attributes and labels are HTML-escaped so a rendered tag parses back
to the same text and route.

The extractor parses the text once into literal and link segments, resolves
each link against the alias table and whitelist, then rebuilds the text in
a single forward pass. Valid links are rendered as ``<route-link>`` tags and
returned as recommendations; external or unknown routes are left as they
were written.
"""

from __future__ import annotations

import html
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType

from loguru import logger
from pydantic import BaseModel, ConfigDict

ROUTE_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "login": "/auth/login",
        "signup": "/auth/signup",
        "register": "/auth/signup",
        "forgot-password": "/auth/forgot-password",
        "password-reset": "/auth/reset-password",
        "reset-password": "/auth/reset-password",
        "verify-email": "/auth/verify-email",
        "home": "/home",
        "dashboard": "/dashboard/overview",
        "bookings": "/dashboard/bookings",
        "availability": "/dashboard/availability",
        "providers": "/providers",
        "notifications": "/notifications",
        "booking": "/booking",
    }
)

VALID_ROUTE_PREFIXES: frozenset[str] = frozenset(
    {
        "/auth/",
        "/dashboard/",
        "/booking",
        "/providers",
        "/provider/",
        "/home",
        "/notifications",
        "/booking-lookup",
        "/booking-cancel/",
        "/availability",
        "/auth/login",
        "/auth/signup",
        "/auth/forgot-password",
        "/auth/reset-password",
        "/auth/verify-email",
        "/auth/google",
    }
)

VALID_EXACT_ROUTES: frozenset[str] = frozenset(
    {"/auth", "/dashboard", "/home", "/notifications", "/booking-lookup"}
)

EXTERNAL_MARKERS = ("://", "www.", ".com", ".org", ".net", ".edu", ".gov")

_STANDARD_PATTERN = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
_BRACKET_PATTERN = re.compile(r"\[\s*([^\]]*/[^\]]*)\s*\]")
_TAGGED_PATTERN = re.compile(r'<route-link\s+text="([^"]+)"\s+route="([^"]+)">([^<]+)</route-link>')


class RouteRecommendation(BaseModel):
    """A validated in-app link: display text and absolute path."""

    model_config = ConfigDict(frozen=True)

    text: str
    route: str

    @property
    def markdown(self) -> str:
        return f"[{self.text}]({self.route})"

    @property
    def tag(self) -> str:
        text = html.escape(self.text)
        return f'<route-link text="{text}" route="{html.escape(self.route)}">{text}</route-link>'


class LinkSyntax(IntEnum):
    """Link syntaxes; lower value wins when two matches start at the same offset."""

    TAGGED = 0
    STANDARD = 1
    BRACKET = 2


@dataclass(frozen=True)
class LinkMatch:
    start: int
    end: int
    syntax: LinkSyntax
    text: str
    route: str


def is_external_route(route: str) -> bool:
    """True for anything that looks like an off-site URL."""
    if re.match(r"^https?://", route):
        return True
    return any(marker in route for marker in EXTERNAL_MARKERS)


def _scan(text: str) -> list[LinkMatch]:
    """Find every candidate link, keeping the earliest of overlapping spans."""
    candidates: list[LinkMatch] = []
    for m in _TAGGED_PATTERN.finditer(text):
        text, route = html.unescape(m.group(1)), html.unescape(m.group(2))
        candidates.append(LinkMatch(m.start(), m.end(), LinkSyntax.TAGGED, text, route))
    for m in _STANDARD_PATTERN.finditer(text):
        candidates.append(LinkMatch(m.start(), m.end(), LinkSyntax.STANDARD, m.group(1), m.group(2)))
    for m in _BRACKET_PATTERN.finditer(text):
        route = m.group(1).strip()
        candidates.append(LinkMatch(m.start(), m.end(), LinkSyntax.BRACKET, route, route))

    candidates.sort(key=lambda c: (c.start, c.syntax))

    selected: list[LinkMatch] = []
    cursor = 0
    for candidate in candidates:
        if candidate.start < cursor:
            continue
        selected.append(candidate)
        cursor = candidate.end
    return selected


class RouteRecommendationExtractor:
    """Find, normalize and re-render in-app links in generated text.

    Stateless apart from the alias table and whitelist, which are fixed at
    construction.
    """

    def __init__(
        self,
        aliases: Mapping[str, str] | None = None,
        valid_prefixes: Iterable[str] | None = None,
        valid_exact_routes: Iterable[str] | None = None,
    ) -> None:
        self.aliases = MappingProxyType(dict(aliases)) if aliases is not None else ROUTE_ALIASES
        self.valid_prefixes = frozenset(valid_prefixes) if valid_prefixes is not None else VALID_ROUTE_PREFIXES
        self.valid_exact_routes = (
            frozenset(valid_exact_routes) if valid_exact_routes is not None else VALID_EXACT_ROUTES
        )

    def normalize_route(self, route: str) -> str | None:
        """Resolve a raw route to a whitelisted absolute path.

        Returns:
            The normalized path, or None when the route is external or not
            an app route
        """
        if is_external_route(route):
            return None

        if not route.startswith("/"):
            route = self.aliases.get(route.lower(), route)
        if route and not route.startswith("/"):
            route = f"/{route}"

        if route.startswith("/auth/dashboard"):
            route = "/dashboard" + route[len("/auth/dashboard") :]
        if route == "/bookings":
            route = "/dashboard/bookings"

        if not self.is_valid_route(route):
            return None
        return route

    def is_valid_route(self, route: str) -> bool:
        if route in self.valid_exact_routes:
            return True
        return any(route.startswith(prefix) for prefix in self.valid_prefixes)

    def extract(self, text: str) -> tuple[str, list[RouteRecommendation]]:
        """Rewrite links in ``text`` and collect the valid ones.

        Args:
            text: Raw generated answer

        Returns:
            Tuple of (processed text, recommendations in order of appearance)
        """
        recommendations: list[RouteRecommendation] = []
        parts: list[str] = []
        cursor = 0

        for match in _scan(text):
            parts.append(text[cursor : match.start])
            cursor = match.end

            route = self.normalize_route(match.route)
            if route is None:
                logger.debug("Dropped route link", route=match.route, syntax=match.syntax.name)
                parts.append(text[match.start : match.end])
                continue

            recommendation = RouteRecommendation(text=match.text, route=route)
            recommendations.append(recommendation)
            parts.append(recommendation.markdown)

        parts.append(text[cursor:])
        processed = "".join(parts)

        for recommendation in recommendations:
            processed = processed.replace(recommendation.markdown, recommendation.tag)

        if recommendations:
            logger.info(
                "Extracted route recommendations",
                count=len(recommendations),
                routes=[r.route for r in recommendations],
            )
        return processed, recommendations
