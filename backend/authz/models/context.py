from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, FrozenSet, Mapping

from authz.utils.validation import first_present


@dataclass(frozen=True)
class UserContext:
    """Attributes of the user being assigned a role, supplied by the identity/HR system."""
    user_id: str
    department: str = ''
    location: str = ''
    seniority_level: int = 0
    skills: FrozenSet[str] = field(default_factory=frozenset)
    security_clearance: str = ''

    def __post_init__(self):
        skills = self.skills
        if isinstance(skills, str):
            skills = (skills,)
        object.__setattr__(self, 'skills', frozenset(skills or ()))
        object.__setattr__(self, 'seniority_level', int(self.seniority_level or 0))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'UserContext':
        user_id = first_present(data, 'userId', 'user_id')
        if not user_id:
            raise ValueError('userId required')
        return cls(
            user_id=str(user_id),
            department=first_present(data, 'department', default=''),
            location=first_present(data, 'location', default=''),
            seniority_level=first_present(data, 'seniorityLevel', 'seniority_level', default=0),
            skills=first_present(data, 'skills', default=()),
            security_clearance=first_present(data, 'securityClearance', 'security_clearance', default=''),
        )


__all__ = ['UserContext']
