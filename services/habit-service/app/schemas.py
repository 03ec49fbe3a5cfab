"""
Pydantic schemas for habit-service

All schemas use Pydantic v2 syntax with ConfigDict
"""
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, field_validator
from typing import Optional, Dict, Any, List

from app.logic.leveling import normalize_xp_reward


# ============= HABIT SCHEMAS =============

class HabitCreate(BaseModel):
    """Schema for creating a new habit"""
    name: str = Field(..., description="Habit name, non-empty after trimming")
    description: str = Field(default="", description="Optional free-text description")
    xpReward: StrictInt = Field(default=10, ge=1, le=100, description="XP awarded per completion")
    isActive: StrictBool = Field(default=True, description="Inactive habits cannot be completed")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Habit name is required and must be a non-empty string"""
        v = v.strip()
        if not v:
            raise ValueError("Habit name is required and must be a non-empty string")
        return v

    @field_validator('description')
    @classmethod
    def strip_description(cls, v: str) -> str:
        return v.strip()

    model_config = ConfigDict(extra="ignore")


class HabitResponse(BaseModel):
    """Schema for a stored habit"""
    userId: str
    habitId: str
    name: str
    description: str = ""
    xpReward: int = 10
    isActive: bool = True
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @field_validator('xpReward', mode='before')
    @classmethod
    def normalize_stored_reward(cls, v: Any) -> int:
        """Older records may hold a fractional reward"""
        return normalize_xp_reward(v, 10)

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class HabitCreatedResponse(BaseModel):
    message: str = "Habit created successfully"
    habit: HabitResponse


class HabitListResponse(BaseModel):
    habits: List[HabitResponse]
    count: int


class HabitDeletedResponse(BaseModel):
    message: str = "Habit deleted successfully"
    habitId: str


# ============= COMPLETION SCHEMAS =============

class CompleteHabitRequest(BaseModel):
    """Schema for completing a habit"""
    habitId: str = Field(..., description="Identifier of the habit to complete")

    @field_validator('habitId')
    @classmethod
    def validate_habit_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("habitId is required and must be a non-empty string")
        return v


class CompletionSummary(BaseModel):
    habitId: str
    habitName: Optional[str] = None
    xpEarned: int
    completedAt: str


class UserSummary(BaseModel):
    level: int = Field(..., ge=1)
    totalXP: int = Field(..., ge=0)
    leveledUp: bool
    previousLevel: int = Field(..., ge=1)
    xpToNextLevel: int


class CompletionResult(BaseModel):
    """Outcome of a successful habit completion"""
    message: str
    completion: CompletionSummary
    user: UserSummary


# ============= USER SCHEMAS =============

class XpProgress(BaseModel):
    currentLevel: int
    xpInLevel: int
    xpNeededForNext: int
    xpPerLevel: int


class UserDataResponse(BaseModel):
    """Schema for user progress data response"""
    userId: str
    level: int = 1
    totalXP: int = 0
    stats: Dict[str, Any] = Field(default_factory=dict)
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None
    xpProgress: Optional[XpProgress] = None
    message: Optional[str] = None


# ============= ERROR SCHEMAS =============

class ErrorResponse(BaseModel):
    error: str
    message: str
    completedAt: Optional[str] = None
