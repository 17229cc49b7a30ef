import hashlib
import json

from votechain.models import Block, Vote

VOTE_FIELDS = ("voter_id", "choice", "ts")
BLOCK_FIELDS = ("index", "vote_hash", "prev_hash", "timestamp", "hash")


# SHA-256 of raw bytes as 64 lowercase hex chars
def digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _canonical(record: dict, fields: tuple) -> bytes:
    ordered = {name: record[name] for name in fields}
    return json.dumps(ordered, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def canonical_vote(vote: Vote) -> bytes:
    """Compact JSON of a vote in fixed field order: voter_id, choice, ts."""
    return _canonical(vote.model_dump(), VOTE_FIELDS)


def canonical_block(block: Block) -> bytes:
    """
    Compact JSON of a block with its hash field blanked.

    Stored blocks can be passed as-is: the stored hash never feeds
    into its own digest.
    """
    fields = block.model_dump()
    fields["hash"] = ""
    return _canonical(fields, BLOCK_FIELDS)


def hash_vote(vote: Vote) -> str:
    return digest(canonical_vote(vote))


def hash_block(block: Block) -> str:
    return digest(canonical_block(block))


def seal_block(block: Block) -> Block:
    """Return a copy of the block with its hash filled in."""
    return block.model_copy(update={"hash": hash_block(block)})
