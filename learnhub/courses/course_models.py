from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# ==================== ENUMS ====================

class CourseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ALL_LEVELS = "all-levels"


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive UTC datetimes; store the same shape"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

# ==================== CURRICULUM MODELS ====================

class QuestionIn(BaseModel):
    question_id: Optional[str] = None  # kept on update when it already exists
    question: str = Field(..., min_length=1)
    options: List[str] = Field(..., min_length=2)
    correct_answer: str
    explanation: str = ""

    @model_validator(mode="after")
    def check_correct_answer(self):
        if self.correct_answer not in self.options:
            raise ValueError("correct_answer must be one of the options")
        return self

class ResourceIn(BaseModel):
    title: str = Field(..., min_length=1)
    file_url: str = Field(..., min_length=1)
    file_type: str = ""

class LectureCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    video_url: str = ""
    duration: float = Field(0, ge=0)  # minutes
    free_preview: bool = False
    resources: List[ResourceIn] = []
    questions: List[QuestionIn] = []

class LectureUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration: Optional[float] = Field(None, ge=0)
    free_preview: Optional[bool] = None
    resources: Optional[List[ResourceIn]] = None
    questions: Optional[List[QuestionIn]] = None

# ==================== COURSE MODELS ====================

class CourseCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=200)
    category: str = ""
    subcategory: str = ""
    level: CourseLevel = CourseLevel.ALL_LEVELS
    primary_language: str = ""
    subtitle: str = ""
    description: str = ""
    welcome_message: str = ""
    pricing: float = Field(..., ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    sale_end_date: Optional[datetime] = None
    objectives: List[str] = []
    prerequisites: List[str] = []
    target_audience: List[str] = []
    tags: List[str] = []

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("sale_end_date")
    @classmethod
    def sale_end_utc(cls, v):
        return to_naive_utc(v)

class CourseUpdate(BaseModel):
    """Curriculum is edited through the lecture endpoints only"""
    model_config = ConfigDict(use_enum_values=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    subcategory: Optional[str] = None
    level: Optional[CourseLevel] = None
    primary_language: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None
    welcome_message: Optional[str] = None
    pricing: Optional[float] = Field(None, ge=0)
    sale_price: Optional[float] = Field(None, ge=0)
    sale_end_date: Optional[datetime] = None
    objectives: Optional[List[str]] = None
    prerequisites: Optional[List[str]] = None
    target_audience: Optional[List[str]] = None
    tags: Optional[List[str]] = None

    @field_validator("sale_end_date")
    @classmethod
    def sale_end_utc(cls, v):
        return to_naive_utc(v)
