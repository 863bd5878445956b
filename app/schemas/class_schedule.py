"""
Class Schedule schemas
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


class ClassSchedule(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cs_id: int
    cs_name: str
    cs_start_time: str
    cs_end_time: str
    cs_days: List[str] = []
    cs_department_id: Optional[int] = None
    cs_faculty_id: int
    cs_lat: Optional[float] = None
    cs_lon: Optional[float] = None
    cs_is_active: bool = True
