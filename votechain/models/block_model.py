from pydantic import BaseModel, ConfigDict, Field


class Block(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0)
    vote_hash: str
    prev_hash: str
    timestamp: int
    hash: str = ""  # empty while the block's own hash is being computed
