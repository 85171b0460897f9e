from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field

from .common import NonNegativeFloat, PositiveInt, RequestModel, UtcDatetime

GalleryCategory = Literal["Clinic", "Events", "Therapy Sessions", "Team", "Success Stories", "Other"]
ServiceCategory = Literal[
    "Occupational Therapy",
    "Speech Therapy",
    "Physical Therapy",
    "Assessment",
    "Consultation",
    "Other",
]
RecipeCategory = Literal["Breakfast", "Lunch", "Dinner", "Dessert", "Snack"]
EmailCategory = Literal["motivation", "reminder", "announcement"]


class GalleryIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    imageUrl: str = Field(..., min_length=1)
    publicId: str | None = None
    category: GalleryCategory
    featured: bool = False
    order: int = 0


class ServiceIn(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    category: ServiceCategory
    duration: PositiveInt
    price: NonNegativeFloat
    isActive: bool = True


class NutritionFacts(RequestModel):
    calories: NonNegativeFloat = 0
    protein: NonNegativeFloat = 0
    carbs: NonNegativeFloat = 0
    fat: NonNegativeFloat = 0
    fiber: NonNegativeFloat = 0


class RecipeIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1)
    category: RecipeCategory
    image: str = "/placeholder.svg?height=200&width=300"
    prepTime: str = Field(..., min_length=1)
    cookTime: str = Field(..., min_length=1)
    servings: PositiveInt
    ingredients: list[str] = Field(..., min_length=1)
    instructions: list[str] = Field(..., min_length=1)
    nutritionFacts: NutritionFacts = Field(default_factory=NutritionFacts)
    isGlutenFree: bool = True
    tags: list[str] = Field(default_factory=list)


class DetoxMeal(RequestModel):
    day: str = Field(..., min_length=1)
    mealPlan: str = Field(..., min_length=1)


class DetoxPlanIn(RequestModel):
    title: str = Field(..., min_length=1, max_length=150)
    description: str = Field(..., min_length=1)
    duration: str = Field(..., min_length=1)
    meals: list[DetoxMeal] = Field(default_factory=list)


class MeetingIn(RequestModel):
    meetLink: str = Field(..., min_length=1)
    date: UtcDatetime
    startTime: str = Field(..., min_length=1)
    endTime: str = Field(..., min_length=1)
    approxDuration: str | None = None
    hostDoctor: str = Field(..., min_length=1)
    associatedPlans: list[str] = Field(default_factory=list)


class EmailSendIn(RequestModel):
    recipients: list[EmailStr] = Field(..., min_length=1, max_length=500)
    subject: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    category: EmailCategory = "announcement"
    userId: str | None = None
    tags: list[str] = Field(default_factory=list)
