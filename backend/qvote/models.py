from __future__ import annotations

import re
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from qvote.core.settings import get_settings
from qvote.db_models import VOTING_MODES, as_utc

SLUG_PATTERN = re.compile(r"[a-z0-9-]+")


# ---------------- Events ----------------
class OptionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    url: Optional[str] = Field(default=None, max_length=500)
    image_url: Optional[str] = Field(default=None, max_length=500)


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)
    slug: Optional[str] = Field(default=None, min_length=3, max_length=50)
    start_date: datetime
    end_date: datetime
    credits_per_voter: int = 100
    voting_mode: str = "individual"
    options: List[OptionCreate] = Field(min_length=1)

    @field_validator("slug")
    @classmethod
    def _slug_rules(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not SLUG_PATTERN.fullmatch(v):
            raise ValueError("slug may only contain lowercase letters, digits and hyphens")
        return v

    @field_validator("credits_per_voter")
    @classmethod
    def _credit_rules(cls, v: int) -> int:
        settings = get_settings()
        if v < settings.credits_min or v > settings.credits_max:
            raise ValueError(
                f"credits_per_voter must be between {settings.credits_min} and {settings.credits_max}"
            )
        return v

    @field_validator("voting_mode")
    @classmethod
    def _mode_rules(cls, v: str) -> str:
        if v not in VOTING_MODES:
            raise ValueError(f"voting_mode must be one of {', '.join(VOTING_MODES)}")
        return v

    @model_validator(mode="after")
    def _window_rules(self) -> "EventCreate":
        if as_utc(self.start_date) >= as_utc(self.end_date):
            raise ValueError("start_date must be before end_date")
        return self


class OptionOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    position: int


class EventOut(BaseModel):
    id: str
    slug: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    credits_per_voter: int
    voting_mode: str
    status: str
    options: List[OptionOut]


class EventCreated(BaseModel):
    id: str
    slug: Optional[str] = None
    admin_token: str


# ---------------- Access tokens ----------------
class TokenIssueRequest(BaseModel):
    count: int = Field(ge=1)


class IssuedToken(BaseModel):
    id: str
    token: str
    is_used: bool
    created_at: datetime


class TokenStatsOut(BaseModel):
    total_issued: int
    total_used: int
    total_unused: int
    usage_rate: float


# ---------------- Voting ----------------
class VoteLine(BaseModel):
    option_id: str
    amount: int


class VoteSubmitRequest(BaseModel):
    lines: List[VoteLine]
    token: Optional[str] = None
    is_amendment: bool = False
    ballot_id: Optional[str] = None


class VoteSubmitResponse(BaseModel):
    ballot_id: str
    is_amendment: bool


class ExistingBallotOut(BaseModel):
    ballot_id: str
    lines: List[VoteLine]
    created_at: datetime
    updated_at: datetime


# ---------------- Results ----------------
class EventSummary(BaseModel):
    id: str
    slug: Optional[str] = None
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: datetime
    credits_per_voter: int
    voting_mode: str


class OptionResult(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    image_url: Optional[str] = None
    url: Optional[str] = None
    total_votes: int
    total_cost: int
    voter_count: int


class Statistics(BaseModel):
    total_participants: int
    total_credits_used: int
    total_credits_available: int
    average_credits_used: float
    participation_rate: float


class DistributionEntry(BaseModel):
    votes: int
    count: int


class Distribution(BaseModel):
    option_id: str
    option_title: str
    distribution: List[DistributionEntry]


class OptionVotes(BaseModel):
    option_id: str
    option_title: str
    votes: int


class HiddenPreferences(BaseModel):
    single_vote_results: List[OptionVotes]
    hidden_votes: List[OptionVotes]
    total_hidden_votes: int
    total_qv_votes: int


class ResultsSnapshot(BaseModel):
    event: EventSummary
    results: List[OptionResult]
    statistics: Statistics
    distributions: List[Distribution]
    hidden_preferences: HiddenPreferences
