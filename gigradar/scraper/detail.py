"""Turn one posting page into a :class:`PostingDetails` record.

Every field is looked up through an ordered table of named rules and the
first rule that yields a non-empty value wins. Scoped, labelled lookups
always come before any regex over free page text, so unrelated text on the
page (time zones, other postings, footers) cannot leak into a field.
Nothing here raises on missing markup: an absent field is ``None`` or empty.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from bs4 import BeautifulSoup, Tag

from gigradar.log import get_logger
from gigradar.models import ClientInfo, FixedBudget, HourlyBudget, PostingDetails

log = get_logger(__name__)

MIN_DESCRIPTION_LENGTH = 20
MAX_SKILL_LENGTH = 100

_WS_RE = re.compile(r"\s+")
_TAG_RE = re.compile(r"<[^>]*>")
_DOLLAR_RE = re.compile(r"\$\s?([\d,]+(?:\.\d+)?)")
_FIXED_AMOUNT_RE = re.compile(r"\$([\d,]+(?:\.\d{2})?)")
_SPEND_RE = re.compile(r"\$\s?([\d,]+(?:\.\d+)?)\s?([KkMm](?![A-Za-z]))?")
_CONNECTS_RE = re.compile(r"(\d+)\s+Connects?(?:\s+Required)?", re.IGNORECASE)
_HIRES_RE = re.compile(r"(\d+)\s+hires?\b", re.IGNORECASE)
_JOBS_POSTED_RE = re.compile(r"(\d+)\s+jobs?\s+posted", re.IGNORECASE)
_HIRE_RATE_RE = re.compile(r"(\d+)%\s+hire\s+rate", re.IGNORECASE)
_OVERFLOW_RE = re.compile(r"\+\s*\d+\s*more", re.IGNORECASE)
_TOTAL_SPENT_RE = re.compile(r"(\$\s?[\d,]+(?:\.\d+)?\s*[KkMm]?)\s+total\s+spent", re.IGNORECASE)

VERIFIED_PHRASES: tuple[str, ...] = ("Payment verified", "Payment method verified")
VERIFIED_SELECTOR = '.payment-verified, [data-test="payment-verified"]'
HOURLY_ICON = '[data-cy="clock-timelog"]'
FIXED_ICON = '[data-cy="fixed-price"]'
COMMITMENT_MARKERS: tuple[str, ...] = ("hrs/week", "Less than", "More than")

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}


@dataclass(frozen=True)
class Rule:
    name: str
    extract: Callable[[BeautifulSoup], Any]


def _empty(value: Any) -> bool:
    return value is None or value == "" or value == []


def first_match(rules: Iterable[Rule], soup: BeautifulSoup) -> Any:
    for rule in rules:
        value = rule.extract(soup)
        if not _empty(value):
            log.debug("field matched by rule %s", rule.name)
            return value
    return None


def collapse(text: str) -> str:
    return _WS_RE.sub(" ", _TAG_RE.sub("", text or "")).strip()


def _text(el: Tag | None) -> str:
    return collapse(el.get_text(" ")) if el is not None else ""


def _int(pattern: re.Pattern[str], text: str) -> int | None:
    m = pattern.search(text or "")
    return int(m.group(1)) if m else None


def parse_money(text: str) -> float | None:
    """``"$1.5K"`` → 1500.0, ``"$2M"`` → 2000000.0, ``"$950"`` → 950.0."""
    m = _SPEND_RE.search(text or "")
    if not m:
        return None
    value = float(m.group(1).replace(",", ""))
    suffix = (m.group(2) or "").lower()
    return value * _MULTIPLIERS.get(suffix, 1)


def find_section(soup: BeautifulSoup, heading: str) -> Tag | None:
    """The container that owns the heading whose text contains ``heading``."""
    needle = heading.lower()
    for h in soup.find_all(["h2", "h3", "h4", "h5", "h6"]):
        if needle in h.get_text(" ").lower():
            return h.find_parent("section") or h.parent
    return None


# ── Title ───────────────────────────────────────────────────────────────

TITLE_RULES: list[Rule] = [
    Rule("styled-h1", lambda s: _text(s.select_one("h1.m-0, h1.h4"))),
    Rule("any-h1", lambda s: _text(s.find("h1"))),
    Rule("any-h2", lambda s: _text(s.find("h2"))),
]


# ── Description ─────────────────────────────────────────────────────────

def _long_enough(text: str) -> str | None:
    text = (text or "").strip()
    return text if len(text) >= MIN_DESCRIPTION_LENGTH else None


def _paragraphs(soup: BeautifulSoup, selector: str) -> str | None:
    parts = [p.get_text().strip() for p in soup.select(selector)]
    return _long_enough("\n".join(p for p in parts if p))


def _whole_description(soup: BeautifulSoup) -> str | None:
    block = soup.select_one('div[data-test="Description"]')
    if block is None:
        return None
    return _long_enough(re.sub(r"^Summary\s+", "", _text(block)))


DESCRIPTION_RULES: list[Rule] = [
    Rule("multiline-text", lambda s: _paragraphs(s, 'div[data-test="Description"] p.multiline-text')),
    Rule("description-paragraphs", lambda s: _paragraphs(s, 'div[data-test="Description"] p')),
    Rule("description-block", _whole_description),
]


# ── Skills ──────────────────────────────────────────────────────────────

def _chips(section: Tag | None, selector: str, *, visible: bool) -> list[str]:
    if section is None:
        return []
    out: list[str] = []
    for el in section.select(selector):
        skill = _text(el)
        if not skill or len(skill) >= MAX_SKILL_LENGTH:
            continue
        # Visible rows end with a "+3 more" toggle, which is not a skill.
        if visible and _OVERFLOW_RE.fullmatch(skill):
            continue
        out.append(skill)
    return out


def _skills_section(soup: BeautifulSoup) -> Tag | None:
    return find_section(soup, "Skills and Expertise")


SKILL_RULES: list[Rule] = [
    Rule(
        "visible-chips",
        lambda s: _chips(_skills_section(s), ".air3-badge-highlight .air3-line-clamp", visible=True),
    ),
    Rule(
        "popover-chips",
        lambda s: _chips(_skills_section(s), ".air3-popover .air3-line-clamp", visible=False),
    ),
]


def extract_skill_tags(soup: BeautifulSoup) -> list[str]:
    """Union of every skill rule, deduplicated in first-seen order."""
    tags: list[str] = []
    for rule in SKILL_RULES:
        tags.extend(rule.extract(soup))
    return list(dict.fromkeys(tags))


# ── Feature list ────────────────────────────────────────────────────────

def _hourly(li: Tag, value: str, out: dict[str, Any]) -> None:
    # Only the rate row or a weekly-commitment row marks the posting as hourly.
    if li.select_one(HOURLY_ICON) is None:
        if any(marker in value for marker in COMMITMENT_MARKERS):
            out["job_type"] = "hourly"
        else:
            log.debug("hourly item without rate icon: %r", value)
        return
    out["job_type"] = "hourly"
    amounts = [float(a.replace(",", "")) for a in _DOLLAR_RE.findall(li.get_text(" "))]
    if len(amounts) >= 2:
        out["budget"] = HourlyBudget(min=amounts[0], max=amounts[1])


def _fixed(li: Tag, value: str, out: dict[str, Any]) -> None:
    out["job_type"] = "fixed"
    if li.select_one(FIXED_ICON) is None:
        return
    strong_text = " ".join(s.get_text(" ") for s in li.find_all("strong"))
    m = _FIXED_AMOUNT_RE.search(strong_text)
    if m:
        out["budget"] = FixedBudget(amount=float(m.group(1).replace(",", "")))


def _store(key: str) -> Callable[[Tag, str, dict[str, Any]], None]:
    def handler(li: Tag, value: str, out: dict[str, Any]) -> None:
        if value:
            out[key] = value

    return handler


FEATURE_HANDLERS: dict[str, Callable[[Tag, str, dict[str, Any]], None]] = {
    "Experience Level": _store("experience_level"),
    "Duration": _store("duration"),
    "Project Type": _store("project_type"),
    "Hourly": _hourly,
    "Fixed-price": _fixed,
    "Fixed Price": _fixed,
    "Budget": _fixed,
}


def parse_features(soup: BeautifulSoup) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for li in soup.select("ul.features li"):
        label = _text(li.select_one(".description"))
        handler = FEATURE_HANDLERS.get(label)
        if handler is None:
            continue
        handler(li, _text(li.find("strong")), out)
    return out


# ── Connects ────────────────────────────────────────────────────────────

def extract_connects(soup: BeautifulSoup) -> int | None:
    return _int(_CONNECTS_RE, soup.get_text(" "))


# ── Client ──────────────────────────────────────────────────────────────

def _about_text(soup: BeautifulSoup) -> str:
    return _text(find_section(soup, "About the client"))


def _labelled(selector: str, pattern: re.Pattern[str]) -> Callable[[BeautifulSoup], int | None]:
    return lambda s: _int(pattern, _text(s.select_one(selector)))


def _about(pattern: re.Pattern[str]) -> Callable[[BeautifulSoup], int | None]:
    return lambda s: _int(pattern, _about_text(s))


def _about_spend(soup: BeautifulSoup) -> float | None:
    m = _TOTAL_SPENT_RE.search(_about_text(soup))
    return parse_money(m.group(1)) if m else None


CLIENT_NAME_RULES: list[Rule] = [
    Rule("client-company-name", lambda s: _text(s.select_one('[data-qa="client-company-name"]'))),
]

CLIENT_COUNTRY_RULES: list[Rule] = [
    # The location item also carries a local-time line; only the strong is the country.
    Rule("client-location-strong", lambda s: _text(s.select_one('li[data-qa="client-location"] strong'))),
]

CLIENT_SPEND_RULES: list[Rule] = [
    Rule("client-spend", lambda s: parse_money(_text(s.select_one('[data-qa="client-spend"]')))),
    Rule("about-total-spent", _about_spend),
]

CLIENT_HIRES_RULES: list[Rule] = [
    Rule("client-hires", _labelled('[data-qa="client-hires"]', _HIRES_RE)),
    Rule("about-hires", _about(_HIRES_RE)),
]

CLIENT_JOBS_POSTED_RULES: list[Rule] = [
    Rule("client-job-posting-stats", _labelled('[data-qa="client-job-posting-stats"]', _JOBS_POSTED_RE)),
    Rule("about-jobs-posted", _about(_JOBS_POSTED_RE)),
]

CLIENT_HIRE_RATE_RULES: list[Rule] = [
    Rule("client-job-posting-stats", _labelled('[data-qa="client-job-posting-stats"]', _HIRE_RATE_RE)),
    Rule("about-hire-rate", _about(_HIRE_RATE_RE)),
]


def is_payment_verified(soup: BeautifulSoup) -> bool:
    text = soup.get_text(" ")
    by_phrase = any(phrase in text for phrase in VERIFIED_PHRASES)
    return by_phrase or soup.select_one(VERIFIED_SELECTOR) is not None


def extract_client(soup: BeautifulSoup) -> ClientInfo:
    return ClientInfo(
        name=first_match(CLIENT_NAME_RULES, soup),
        country=first_match(CLIENT_COUNTRY_RULES, soup),
        total_spend=first_match(CLIENT_SPEND_RULES, soup),
        hire_rate=first_match(CLIENT_HIRE_RATE_RULES, soup),
        jobs_posted=first_match(CLIENT_JOBS_POSTED_RULES, soup),
        hires=first_match(CLIENT_HIRES_RULES, soup),
        payment_verified=is_payment_verified(soup),
    )


def parse_posting_html(html: str) -> PostingDetails:
    soup = BeautifulSoup(html or "", "html.parser")
    features = parse_features(soup)
    details = PostingDetails(
        title=first_match(TITLE_RULES, soup),
        description=first_match(DESCRIPTION_RULES, soup),
        budget=features.get("budget"),
        job_type=features.get("job_type"),
        experience_level=features.get("experience_level"),
        duration=features.get("duration"),
        project_type=features.get("project_type"),
        skill_tags=extract_skill_tags(soup),
        connects_required=extract_connects(soup),
        client=extract_client(soup),
    )
    log.debug(
        "Parsed posting %r: %d skills, budget=%s",
        details.title,
        len(details.skill_tags),
        details.budget,
    )
    return details
