from __future__ import annotations

from typing import Literal

from pydantic import Field

from .common import NonNegativeFloat, ObjectIdField, PositiveInt, RequestModel, UtcDatetime

CourseCategory = Literal[
    "therapy",
    "mental health",
    "parenting",
    "education",
    "counseling",
    "wellness",
    "other",
]
CourseStatus = Literal["draft", "published", "archived", "active"]
WebinarStatus = Literal["scheduled", "live", "completed", "cancelled"]
ItemType = Literal["course", "webinar"]
WorkshopCategory = Literal["cooking", "fitness", "wellness", "mindfulness", "nutrition"]
WorkshopStatus = Literal["upcoming", "ongoing", "completed", "cancelled"]


class CourseVideoIn(RequestModel):
    url: str = Field(..., min_length=1)
    title: str | None = Field(default=None, max_length=200)
    duration: str | None = None


class CourseIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    instructor: str | None = None
    price: NonNegativeFloat
    duration: str = "Self-paced"
    thumbnail: str = Field(..., min_length=1)
    category: CourseCategory
    status: CourseStatus = "draft"
    featured: bool = False
    tags: list[str] = Field(default_factory=list)


class CourseStatusIn(RequestModel):
    status: CourseStatus


class WebinarIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=100)
    speaker: str = Field(..., min_length=1)
    date: UtcDatetime
    duration: PositiveInt
    startTime: str = Field(..., min_length=1)
    maxRegistrations: PositiveInt
    status: WebinarStatus = "scheduled"
    url: str | None = None
    thumbnail: str | None = None
    description: str | None = None


class WebinarStatusIn(RequestModel):
    status: WebinarStatus


class FeedbackIn(RequestModel):
    itemType: ItemType
    itemId: ObjectIdField
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class FeedbackUpdateIn(RequestModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(default=None, max_length=1000)


class WorkshopIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    instructor: str = Field(..., min_length=1)
    date: UtcDatetime
    startTime: str = Field(..., min_length=1)
    endTime: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1)
    maxParticipants: PositiveInt = 20
    price: NonNegativeFloat
    memberDiscount: float = Field(default=20, ge=0, le=100)
    category: WorkshopCategory
    status: WorkshopStatus = "upcoming"
    image: str = "/placeholder.svg?height=200&width=300"
    materials: list[str] = Field(default_factory=list)
    prerequisites: list[str] = Field(default_factory=list)
