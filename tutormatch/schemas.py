from typing import Optional, List, Literal, Dict, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, AnyHttpUrl, AliasChoices, model_validator
from pydantic.alias_generators import to_camel
from datetime import datetime

# --------------------------
# Shared
# --------------------------
class CamelModel(BaseModel):
    """Wire models keep the camelCase field names the web client sends."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Party(BaseModel):
    full_name: str
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    city: str = ""
    native_language: str = ""
    gender: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

# --------------------------
# Students
# --------------------------
class StudentIn(Party):
    special_requests: Optional[str] = None

class StudentOut(StudentIn):
    id: str
    is_matched: bool = False

# --------------------------
# Volunteers
# --------------------------
class VolunteerIn(Party):
    capacity: int = Field(1, ge=1, validation_alias=AliasChoices("capacity", "capacity_max"))
    current_matches: int = Field(0, ge=0, validation_alias=AliasChoices("current_matches", "current_students"))
    is_active: bool = True
    scholarship_active: Optional[bool] = None

    @model_validator(mode="after")
    def _within_capacity(self):
        if self.current_matches > self.capacity:
            raise ValueError("current_matches cannot exceed capacity")
        return self

class VolunteerOut(VolunteerIn):
    id: str

# --------------------------
# Matching
# --------------------------
class GenerateMatchesIn(CamelModel):
    min_score: Optional[int] = Field(None, ge=0, le=100)
    limit: Optional[int] = Field(None, ge=0)
    max_distance: Optional[int] = Field(None, ge=0)
    city_filter: Optional[str] = None
    language_filter: Optional[str] = None
    match_gender: bool = True

class GenerateMatchesOut(CamelModel):
    suggested_count: int
    message: str

class ScanOut(BaseModel):
    id: str
    scan_type: Literal["manual", "automatic"]
    parameters: dict
    results: dict
    created_at: Optional[datetime] = None

# --------------------------
# Match status
# --------------------------
class UpdateMatchStatusIn(CamelModel):
    # presence is checked by the state machine so the error shape stays uniform
    match_id: Optional[str] = None
    action: Optional[str] = None

class UpdateMatchStatusOut(CamelModel):
    success: bool
    message: str
    match_id: str

class BatchStatusIn(CamelModel):
    match_ids: List[str]
    action: Optional[str] = None

class PartySummary(BaseModel):
    id: str
    full_name: str
    city: str = ""

class MatchOut(BaseModel):
    id: str
    student_id: Optional[str] = None
    volunteer_id: Optional[str] = None
    confidence_score: int
    match_reason: str
    status: str
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    student: Optional[PartySummary] = None
    volunteer: Optional[PartySummary] = None

# --------------------------
# Settings / webhooks
# --------------------------
SettingsPatch = Dict[str, Union[int, str]]

class HookIn(BaseModel):
    url: AnyHttpUrl
    enabled: bool = True

class HookOut(BaseModel):
    id: str
    url: str
    enabled: bool
