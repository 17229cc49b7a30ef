from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, field_validator


class Vote(BaseModel):
    model_config = ConfigDict(frozen=True)

    voter_id: StrictStr = Field(..., min_length=1, examples=["voter-42"])
    choice: StrictStr = Field(..., min_length=1, examples=["A"])
    # BSON int64
    ts: StrictInt = Field(..., ge=-(2**63), le=2**63 - 1, examples=[1700000000])

    @field_validator("voter_id", "choice")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value
