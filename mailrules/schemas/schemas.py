from datetime import datetime
from typing import Any
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator
from pydantic_core import PydanticCustomError

from mailrules.email.rules import validate_rule_value
from mailrules.errors import ValidationError
from mailrules.models.enums import JobStatus
from mailrules.models.enums import RuleType

# ---------------------------------------------------------------------------
# Rule cleanup
# ---------------------------------------------------------------------------

CLEANUP_REQUIRED_FIELDS = ("rule_type", "rule_value", "category_name", "category_sort_order")


class CleanupRuleIn(BaseModel):
    rule_type: RuleType
    rule_value: str
    category_name: str
    # Strict so that JSON ``true`` or ``"1"`` never becomes a label index.
    category_sort_order: int = Field(strict=True, ge=0)

    @model_validator(mode="before")
    @classmethod
    def check_required(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        for name in CLEANUP_REQUIRED_FIELDS:
            value = data.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise PydanticCustomError(
                    "missing_fields",
                    "Missing required fields: " + ", ".join(CLEANUP_REQUIRED_FIELDS),
                )
        return data

    @model_validator(mode="after")
    def check_rule_value(self) -> "CleanupRuleIn":
        try:
            self.rule_value = validate_rule_value(self.rule_type, self.rule_value)
        except ValidationError as exc:
            raise PydanticCustomError("rule_value", str(exc)) from exc
        self.category_name = self.category_name.strip()
        return self


class ProviderCleanupResultOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: str
    emails_processed: int = Field(alias="emailsProcessed")
    filter_deleted: bool = Field(alias="filterDeleted")


class CleanupRuleOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Rule cleanup complete"
    results: List[ProviderCleanupResultOut]
    total_emails_processed: int = Field(alias="totalEmailsProcessed")


# ---------------------------------------------------------------------------
# Sync jobs
# ---------------------------------------------------------------------------


class SyncJobStartedOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    job_id: str = Field(alias="jobId")
    message: str = "Sync completed successfully"


class SyncJobOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organization_id: str
    user_id: str
    job_type: str
    status: JobStatus
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
