"""Pass catalog request and response schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from ..core.constants import MAX_PASS_NAME_LENGTH
from ..core.enums import PassKind, ValidityType
from ._strict_base import StrictModel, StrictRequestModel


class PassBase(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=MAX_PASS_NAME_LENGTH)
    description: Optional[str] = Field(None, max_length=2000)
    kind: PassKind
    price_minor_units: int = Field(..., ge=0, description="Price in minor currency units")
    validity_type: ValidityType = ValidityType.DAYS
    validity_days: Optional[int] = None
    expiry_date: Optional[datetime] = None
    class_credit_limit: Optional[int] = Field(
        None, description="Credits for clip-based kinds; ignored for single and unlimited"
    )
    is_active: bool = True


class PassCreate(PassBase):
    """Create a pass. Validity and credit rules are checked by the catalog service."""


class PassUpdate(StrictRequestModel):
    """Partial update; omitted fields keep their current value."""

    name: Optional[str] = Field(None, min_length=1, max_length=MAX_PASS_NAME_LENGTH)
    description: Optional[str] = Field(None, max_length=2000)
    kind: Optional[PassKind] = None
    price_minor_units: Optional[int] = Field(None, ge=0)
    validity_type: Optional[ValidityType] = None
    validity_days: Optional[int] = None
    expiry_date: Optional[datetime] = None
    class_credit_limit: Optional[int] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def _not_empty(self) -> "PassUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class PassResponse(StrictModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str] = None
    kind: PassKind
    price_minor_units: int
    validity_type: ValidityType
    validity_days: Optional[int] = None
    expiry_date: Optional[datetime] = None
    class_credit_limit: Optional[int] = None
    is_active: bool
    version: int


class PassListResponse(StrictModel):
    passes: List[PassResponse]


class UpgradeOption(StrictModel):
    pass_: PassResponse = Field(..., alias="pass")
    price_difference_minor_units: int


class UpgradeOptionsResponse(StrictModel):
    subscription_id: str
    current_price_minor_units: int
    options: List[UpgradeOption]
