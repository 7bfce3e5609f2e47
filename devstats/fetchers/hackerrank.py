"""
HackerRank fetcher.

There is no public API, so the profile page is scraped. The markup changes
often; every field is read by an ordered list of extractors and the first one
that finds something wins. Fields nothing matches keep their template default.
Only a failed page load is an error.
"""
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup

from ..upstream import UpstreamClient
from .common import clean_username

PLATFORM = "HackerRank"
BASE_URL = "https://www.hackerrank.com"

# HackerRank serves a stripped page to obvious bots
PAGE_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Upgrade-Insecure-Requests": "1",
}

Extractor = Callable[[BeautifulSoup], Optional[Any]]

AVATAR_SELECTORS = [
    'img[src*="profile"]',
    'img[alt*="profile"]',
    'img[alt*="avatar"]',
    'img[class*="avatar"]',
    'img[class*="profile"]',
    ".profile-avatar img",
    ".avatar img",
    'img[src*="hackerrank"]',
]
LOCATION_SELECTORS = ["span.location", ".profile-location", '[class*="location"]']
SOLVED_SELECTORS = ["div.stat", ".stat", '[class*="stat"]', '[class*="score"]', '[class*="solved"]']
RANK_SELECTORS = ["div.rank", ".rank", '[class*="rank"]', '[class*="rating"]']

SOLVED_WORDS = ("solved", "problems", "challenges")
MAX_RANK_LENGTH = 20


def hackerrank_template(username: str) -> Dict[str, Any]:
    return {
        "username": username,
        "profileUrl": f"{BASE_URL}/{username}",
        "avatar": None,
        "location": None,
        "totalSolved": 0,
        "rank": "N/A",
    }


# ---------------------------------------------------
# Extractors: (soup) -> value | None
# ---------------------------------------------------

def avatar_from(selector: str) -> Extractor:
    def extract(soup: BeautifulSoup) -> Optional[str]:
        img = soup.select_one(selector)
        src = img.get("src") if img is not None else None
        if not src:
            return None
        return BASE_URL + src if src.startswith("/") else src
    return extract


def location_from(selector: str) -> Extractor:
    def extract(soup: BeautifulSoup) -> Optional[str]:
        el = soup.select_one(selector)
        text = el.get_text(strip=True) if el is not None else ""
        return text or None
    return extract


def solved_from(selector: str) -> Extractor:
    def extract(soup: BeautifulSoup) -> Optional[int]:
        for el in soup.select(selector):
            text = el.get_text(" ", strip=True).lower()
            if not any(word in text for word in SOLVED_WORDS):
                continue
            m = re.search(r"(\d+)", text)
            if m:
                return int(m.group(1))
        return None
    return extract


def rank_from(selector: str) -> Extractor:
    # [class*="rank"] also hits "hackerrank-*" branding classes, so the bare
    # platform name is skipped. Other short branding text can still slip through.
    def extract(soup: BeautifulSoup) -> Optional[str]:
        for el in soup.select(selector):
            text = el.get_text(" ", strip=True)
            if not text or text == "N/A" or text.lower() == PLATFORM.lower():
                continue
            if len(text) < MAX_RANK_LENGTH:
                return text
        return None
    return extract


AVATAR_EXTRACTORS: List[Extractor] = [avatar_from(s) for s in AVATAR_SELECTORS]
LOCATION_EXTRACTORS: List[Extractor] = [location_from(s) for s in LOCATION_SELECTORS]
SOLVED_EXTRACTORS: List[Extractor] = [solved_from(s) for s in SOLVED_SELECTORS]
RANK_EXTRACTORS: List[Extractor] = [rank_from(s) for s in RANK_SELECTORS]


def first_match(soup: BeautifulSoup, extractors: Sequence[Extractor]) -> Optional[Any]:
    for extract in extractors:
        value = extract(soup)
        if value is not None:
            return value
    return None


def parse_profile(html: str, username: str) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")
    tpl = hackerrank_template(username)
    fields = {
        "avatar": AVATAR_EXTRACTORS,
        "location": LOCATION_EXTRACTORS,
        "totalSolved": SOLVED_EXTRACTORS,
        "rank": RANK_EXTRACTORS,
    }
    for field, extractors in fields.items():
        value = first_match(soup, extractors)
        if value is not None:
            tpl[field] = value
    return tpl


def fetch_hackerrank(username: str, client: UpstreamClient) -> Dict[str, Any]:
    username = clean_username(username, PLATFORM)
    r = client.get(
        f"{BASE_URL}/{username}",
        platform=PLATFORM,
        headers=PAGE_HEADERS,
        not_found_message="HackerRank user not found",
    )
    return parse_profile(r.text, username)
