import re
from typing import List, Optional, Set

import pydantic

from wait_on_check.errors import ConfigurationError
from wait_on_check.github.model import CheckConclusion

DEFAULT_ALLOWED_CONCLUSIONS = [
    CheckConclusion.success.value,
    CheckConclusion.skipped.value,
]


class Model(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)


class WaitConfig(Model):
    workflow_name: Optional[str] = None
    ignore_checks: Set[str] = pydantic.Field(default_factory=set)

    check_name: Optional[str] = None
    check_regexp: Optional[str] = None

    allowed_conclusions: List[str] = pydantic.Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_CONCLUSIONS)
    )
    fail_on_no_checks: bool = True

    wait: int = pydantic.Field(10, ge=0)
    verbose: bool = False

    @pydantic.field_validator("workflow_name", "check_name", "check_regexp")
    @classmethod
    def _blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value.strip() == "":
            return None
        return value

    @pydantic.field_validator("check_regexp")
    @classmethod
    def _regexp_compiles(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                re.compile(value)
            except re.error as e:
                raise ValueError(f"Invalid check regexp '{value}': {e}")
        return value

    @pydantic.field_validator("ignore_checks", mode="before")
    @classmethod
    def _split_ignore_checks(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        return {v.strip() for v in value if v.strip() != ""}

    @pydantic.field_validator("allowed_conclusions", mode="before")
    @classmethod
    def _split_allowed_conclusions(cls, value):
        if isinstance(value, str):
            value = value.split(",")
        conclusions = [v.strip() for v in value if v.strip() != ""]
        if len(conclusions) == 0:
            raise ValueError("At least one allowed conclusion is required")
        return conclusions

    @property
    def filters_present(self) -> bool:
        return self.check_name is not None or self.check_regexp is not None

    @property
    def excluded_names(self) -> Set[str]:
        names = set(self.ignore_checks)
        if self.workflow_name is not None:
            names.add(self.workflow_name)
        return names

    @classmethod
    def from_inputs(cls, **kwargs) -> "WaitConfig":
        try:
            return cls.model_validate(kwargs)
        except pydantic.ValidationError as e:
            raise ConfigurationError(str(e)) from e
