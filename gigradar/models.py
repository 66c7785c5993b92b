"""Data models for postings, scores and the user profile."""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class FixedBudget:
    amount: float


@dataclass(frozen=True)
class HourlyBudget:
    min: float
    max: float


# ``None`` stands for "no budget listed".
Budget = Union[FixedBudget, HourlyBudget, None]


def budget_to_dict(budget: Budget) -> dict[str, Any] | None:
    if budget is None:
        return None
    if isinstance(budget, FixedBudget):
        return {"type": "fixed", "amount": budget.amount}
    if isinstance(budget, HourlyBudget):
        return {"type": "hourly", "hourly_min": budget.min, "hourly_max": budget.max}
    raise TypeError(f"unknown budget variant: {budget!r}")


def budget_from_dict(data: dict[str, Any] | None) -> Budget:
    if not data:
        return None
    kind = data.get("type")
    if kind == "fixed":
        return FixedBudget(amount=float(data.get("amount") or 0))
    if kind == "hourly":
        return HourlyBudget(
            min=float(data.get("hourly_min") or 0),
            max=float(data.get("hourly_max") or 0),
        )
    raise ValueError(f"unknown budget type: {kind!r}")


@dataclass
class ClientInfo:
    name: str | None = None
    country: str | None = None
    total_spend: float | None = None
    hire_rate: int | None = None
    jobs_posted: int | None = None
    hires: int | None = None
    payment_verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ClientInfo":
        if not data:
            return cls()
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


@dataclass
class PostingDetails:
    """Everything the detail extractor can pull out of one posting page."""

    title: str | None = None
    description: str | None = None
    budget: Budget = None
    job_type: str | None = None
    experience_level: str | None = None
    duration: str | None = None
    project_type: str | None = None
    skill_tags: list[str] = field(default_factory=list)
    connects_required: int | None = None
    client: ClientInfo = field(default_factory=ClientInfo)


@dataclass
class RawPosting:
    source_id: str
    url: str
    title: str | None = None
    # None until the detail page has been scraped.
    description: str | None = None
    budget: Budget = None
    job_type: str | None = None
    experience_level: str | None = None
    duration: str | None = None
    project_type: str | None = None
    skill_tags: list[str] = field(default_factory=list)
    connects_required: int | None = None
    client: ClientInfo = field(default_factory=ClientInfo)
    posted_at: str | None = None
    fetched_at: str | None = None
    id: int | None = None

    @property
    def is_stub(self) -> bool:
        return self.description is None

    @classmethod
    def from_details(
        cls, source_id: str, url: str, details: PostingDetails, **extra: Any
    ) -> "RawPosting":
        return cls(
            source_id=source_id,
            url=url,
            title=details.title,
            description=details.description,
            budget=details.budget,
            job_type=details.job_type,
            experience_level=details.experience_level,
            duration=details.duration,
            project_type=details.project_type,
            skill_tags=list(details.skill_tags),
            connects_required=details.connects_required,
            client=details.client,
            **extra,
        )


@dataclass
class UserProfile:
    skills: list[str]
    min_budget: float = 0.0
    preferred_countries: list[str] = field(default_factory=list)

    def embedding_text(self) -> str:
        return ", ".join(self.skills)


@dataclass(frozen=True)
class ScoreBreakdown:
    embedding_similarity: float
    budget_score: float
    client_score: float
    skills_score: float
    relevance_score: float


@dataclass
class ProcessedResult:
    id: int
    clean_text: str
    extracted_skill_tags: list[str]
    embedding_vector: list[float]
    scores: ScoreBreakdown
    metadata: dict[str, Any] = field(default_factory=dict)
    processed_at: str | None = None


@dataclass
class CrawlResult:
    scraped: int = 0
    known: int = 0
    errors: list[str] = field(default_factory=list)
    urls_found: int = 0
    missing_budget: int = 0

    @property
    def success(self) -> bool:
        return self.scraped > 0

    @property
    def budget_gap_ratio(self) -> float:
        if not self.scraped:
            return 0.0
        return self.missing_budget / self.scraped


@dataclass
class ProcessResult:
    processed: int = 0
    failed: int = 0
    notified: int = 0
    errors: list[str] = field(default_factory=list)
