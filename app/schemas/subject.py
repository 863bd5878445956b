"""
Subject schema - authenticated caller identity
"""
from typing import Literal, Optional
from pydantic import BaseModel

Role = Literal["admin", "faculty", "student"]


class Subject(BaseModel):
    user_id: int
    role: Role = "student"
    department_id: Optional[int] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_staff(self) -> bool:
        return self.role in ("admin", "faculty")

    @property
    def display_name(self) -> str:
        return self.name or f"User {self.user_id}"
