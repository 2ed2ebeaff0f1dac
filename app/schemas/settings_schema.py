from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

# policy keys read by the services, with the values they accept
INT_SETTINGS = {
    "MIN_COMMITTEE_APPROVAL": 1,
    "TENURE_UPPER_TOLERANCE_MONTHS": 0,
}
CHOICE_SETTINGS = {
    "OVERPAYMENT_POLICY": ("CREDIT_SAVINGS", "REJECT", "DISCARD"),
}


def check_policy_value(key: str, value: str) -> str:
    if key in INT_SETTINGS:
        try:
            number = int(value)
        except ValueError:
            raise ValueError(f"{key} must be a whole number")
        if number < INT_SETTINGS[key]:
            raise ValueError(f"{key} must be >= {INT_SETTINGS[key]}")
        return str(number)
    if key in CHOICE_SETTINGS:
        value = value.upper()
        if value not in CHOICE_SETTINGS[key]:
            raise ValueError(f"{key} must be one of {', '.join(CHOICE_SETTINGS[key])}")
    return value


class SettingPatch(BaseModel):
    key: str = Field(..., min_length=1)
    value: str = Field(..., min_length=1)

    @field_validator("key", "value", mode="before")
    def strip(cls, v):
        return str(v).strip() if v is not None else v

    @model_validator(mode="after")
    def validate_policy(self):
        self.key = self.key.upper()
        self.value = check_policy_value(self.key, self.value)
        return self


class SettingCreate(SettingPatch):
    description: str = Field("", max_length=500)


class SettingOut(BaseModel):
    key: str
    value: str
    description: Optional[str] = None

    class Config:
        from_attributes = True
