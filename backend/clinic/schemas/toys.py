from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, model_validator

from .common import NonNegativeInt, ObjectIdField, PositiveInt, RequestModel, UtcDatetime

Condition = Literal["Excellent", "Good", "Fair", "Needs Repair", "Damaged"]
Relationship = Literal["Father", "Mother", "Guardian", "Other"]
BorrowingStatus = Literal["Borrowed", "Returned", "Overdue", "Lost", "Damaged"]


class ToyIn(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=1000)
    image: str | None = None


class ToyCreateIn(ToyIn):
    # Units 1..N are created alongside the toy.
    units: NonNegativeInt = Field(default=0, le=500)


class ToyUnitIn(RequestModel):
    unitNumber: PositiveInt
    condition: Condition = "Good"
    notes: str | None = Field(default=None, max_length=1000)


class ToyUnitUpdateIn(RequestModel):
    unitNumber: PositiveInt | None = None
    condition: Condition | None = None
    notes: str | None = Field(default=None, max_length=1000)


class IssueToyIn(RequestModel):
    toyId: ObjectIdField
    toyUnitId: ObjectIdField | None = None
    borrowerName: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=30)
    email: EmailStr
    relationship: Relationship
    issueDate: UtcDatetime | None = None
    dueDate: UtcDatetime
    notes: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _due_after_issue(self):
        if self.issueDate is not None and self.dueDate < self.issueDate:
            raise ValueError("Due date must be on or after the issue date")
        return self


class ReturnToyIn(RequestModel):
    conditionOnReturn: Condition
    returnDate: UtcDatetime | None = None
    notes: str | None = Field(default=None, max_length=1000)


class BulkReturnIn(RequestModel):
    # Malformed ids are reported per item rather than failing the batch.
    borrowingIds: list[str] = Field(..., min_length=1, max_length=200)
    conditionOnReturn: Condition = "Good"
    notes: str | None = Field(default=None, max_length=1000)


class ProcessReturnIn(RequestModel):
    conditionOnReturn: Condition = "Good"
    returnNotes: str | None = Field(default=None, max_length=1000)


class BorrowingStatusIn(RequestModel):
    status: BorrowingStatus
    notes: str | None = Field(default=None, max_length=1000)


class BorrowerIn(RequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    phone: str = Field(..., min_length=1, max_length=30)
    email: EmailStr
    relationship: Relationship
    address: str | None = Field(default=None, max_length=300)
    notes: str | None = Field(default=None, max_length=1000)


class ReminderIn(RequestModel):
    borrowingId: ObjectIdField
