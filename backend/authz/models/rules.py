"""Assignment-time validation rules.

A closed set of rule kinds, each carrying typed parameters. Stored role data keeps rules in the
loose form {type, condition, errorMessage}; `parse_rule` converts that once at load time so
evaluation never parses strings.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, Mapping, Optional

from authz.models.context import UserContext
from authz.utils.validation import first_present, snake_case


class ValidationRule:
    rule_type: ClassVar[str] = ''
    error_message: str
    is_active: bool

    @property
    def condition(self) -> str:
        raise NotImplementedError

    def is_satisfied_by(self, context: UserContext) -> bool:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self.rule_type,
            'condition': self.condition,
            'errorMessage': self.error_message,
            'isActive': self.is_active,
        }


@dataclass(frozen=True)
class SkillRequirement(ValidationRule):
    skill: str
    error_message: str = 'Required skill missing'
    is_active: bool = True
    rule_type: ClassVar[str] = 'skill_requirement'

    @property
    def condition(self) -> str:
        return self.skill

    def is_satisfied_by(self, context: UserContext) -> bool:
        return self.skill in context.skills


@dataclass(frozen=True)
class SeniorityThreshold(ValidationRule):
    minimum: int
    error_message: str = 'Insufficient seniority'
    is_active: bool = True
    rule_type: ClassVar[str] = 'seniority_level'

    @property
    def condition(self) -> str:
        return str(self.minimum)

    def is_satisfied_by(self, context: UserContext) -> bool:
        return context.seniority_level >= self.minimum


@dataclass(frozen=True)
class DepartmentMatch(ValidationRule):
    department: str
    error_message: str = 'Department does not match'
    is_active: bool = True
    rule_type: ClassVar[str] = 'department_match'

    @property
    def condition(self) -> str:
        return self.department

    def is_satisfied_by(self, context: UserContext) -> bool:
        return context.department == self.department


@dataclass(frozen=True)
class LocationMatch(ValidationRule):
    location: str
    error_message: str = 'Location does not match'
    is_active: bool = True
    rule_type: ClassVar[str] = 'location_match'

    @property
    def condition(self) -> str:
        return self.location

    def is_satisfied_by(self, context: UserContext) -> bool:
        return context.location == self.location


@dataclass(frozen=True)
class SecurityClearance(ValidationRule):
    clearance: str
    error_message: str = 'Security clearance does not match'
    is_active: bool = True
    rule_type: ClassVar[str] = 'security_clearance'

    @property
    def condition(self) -> str:
        return self.clearance

    def is_satisfied_by(self, context: UserContext) -> bool:
        return context.security_clearance == self.clearance


@dataclass(frozen=True)
class CustomRule(ValidationRule):
    """Named caller-supplied predicate; `name` is what stored data refers to."""
    name: str
    predicate: Callable[[UserContext], bool] = field(compare=False, repr=False)
    error_message: str = 'Custom validation failed'
    is_active: bool = True
    rule_type: ClassVar[str] = 'custom'

    @property
    def condition(self) -> str:
        return self.name

    def is_satisfied_by(self, context: UserContext) -> bool:
        return bool(self.predicate(context))


RULE_TYPES = {
    cls.rule_type: cls
    for cls in (SkillRequirement, SeniorityThreshold, DepartmentMatch, LocationMatch, SecurityClearance, CustomRule)
}


def parse_rule(data: Any, custom_predicates: Optional[Mapping[str, Callable[[UserContext], bool]]] = None) -> ValidationRule:
    """Build a typed rule from its stored mapping form (rule instances pass through)."""
    if isinstance(data, ValidationRule):
        return data
    raw_type = first_present(data, 'type', 'rule_type')
    if not raw_type:
        raise ValueError('rule type required')
    rule_type = snake_case(str(raw_type))
    if rule_type not in RULE_TYPES:
        raise ValueError(f'unknown rule type {raw_type!r}')
    condition = str(first_present(data, 'condition', default=''))
    common = {'is_active': bool(first_present(data, 'isActive', 'is_active', default=True))}
    message = first_present(data, 'errorMessage', 'error_message')
    if message is not None:
        common['error_message'] = str(message)

    if rule_type == SeniorityThreshold.rule_type:
        try:
            minimum = int(condition)
        except ValueError:
            raise ValueError(f'seniority condition must be int, got {condition!r}')
        return SeniorityThreshold(minimum, **common)
    if rule_type == CustomRule.rule_type:
        predicate = (custom_predicates or {}).get(condition)
        if predicate is None:
            raise ValueError(f'no predicate registered for custom rule {condition!r}')
        return CustomRule(condition, predicate, **common)
    return RULE_TYPES[rule_type](condition, **common)


__all__ = [
    'ValidationRule', 'SkillRequirement', 'SeniorityThreshold', 'DepartmentMatch', 'LocationMatch',
    'SecurityClearance', 'CustomRule', 'RULE_TYPES', 'parse_rule',
]
