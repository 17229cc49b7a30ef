from votechain.models.block_model import Block
from votechain.models.vote_model import Vote

__all__ = ["Block", "Vote"]
