from fastapi import APIRouter, Depends, Request

from votechain.verification import ChainVerifier

router = APIRouter(prefix="/chain", tags=["Chain"])


def get_verifier(request: Request) -> ChainVerifier:
    return request.app.state.verifier


@router.get("/verify")
async def verify_chain(verifier: ChainVerifier = Depends(get_verifier)):
    """
    Re-checks every stored block. A broken chain raises ChainIntegrityError,
    which the app turns into a 500 with the diagnostic.
    """
    report = await verifier.verify_chain()
    return {"ok": True, "length": report.length, "tip_hash": report.tip_hash, "votes": report.votes}


@router.get("/orphans")
async def list_orphans(verifier: ChainVerifier = Depends(get_verifier)):
    """
    Votes that were stored but never chained, and blocks whose vote is gone
    or was altered, for manual reconciliation.
    """
    result = await verifier.reconcile()
    return {
        "count": len(result.orphaned_votes),
        "votes": [v.model_dump() for v in result.orphaned_votes],
        "unmatched_blocks": [{"index": b.index, "vote_hash": b.vote_hash} for b in result.unmatched_blocks],
    }
