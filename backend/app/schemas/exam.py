"""
Pydantic schemas for exam scheduling and Exam Mode.

Slot shape rules (take-home vs. sit-in) are enforced by the exam service so
that they apply identically to HTTP and in-process callers.
"""

from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, Field


class ExamCreate(BaseModel):
    date: date
    is_take_home: bool = False
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    room_id: Optional[int] = None
    course_code: str = Field(..., min_length=1, max_length=50)
    course_name: str = Field(..., min_length=1, max_length=255)
    semester: int = Field(..., ge=1, le=8)
    class_name: str = Field(..., min_length=1, max_length=20)
    student_amount: int = Field(default=0, ge=0)
    lecturer_id: int
    inspector_id: Optional[int] = None
    study_program_id: int


class ExamUpdate(ExamCreate):
    version: Optional[int] = None


class InspectorResponse(BaseModel):
    full_name: Optional[str]
    captured_at: Optional[datetime]

    model_config = {"from_attributes": True}


class ExamResponse(BaseModel):
    id: int
    day: str
    date: date
    start_time: Optional[time]
    end_time: Optional[time]
    is_take_home: bool
    room_id: Optional[int]
    course_code: str
    course_name: str
    semester: int
    class_name: str
    student_amount: int
    lecturer_id: int
    inspector_name: Optional[str]
    inspector_captured_at: Optional[datetime]
    department_id: Optional[int]
    study_program_id: int
    version: int

    model_config = {"from_attributes": True}


class LecturerCandidate(BaseModel):
    id: int
    full_name: str
    identity_number: str

    model_config = {"from_attributes": True}


class ExamModeToggle(BaseModel):
    confirm: bool = False
    version: Optional[int] = None


class ExamModeResponse(BaseModel):
    enabled: bool
    version: int
    deleted_exams: int = 0
    updated_by: Optional[int] = None
