from fastapi import APIRouter, Depends, Request

from votechain.models import Vote
from votechain.pipeline import VotePipeline
from votechain.results import ResultsAggregator

vote_router = APIRouter(tags=["Vote"])


def get_pipeline(request: Request) -> VotePipeline:
    return request.app.state.pipeline


def get_results(request: Request) -> ResultsAggregator:
    return request.app.state.results


# ------------------------------
# CAST VOTE
# ------------------------------
@vote_router.post("/vote")
async def cast_vote(vote: Vote, pipeline: VotePipeline = Depends(get_pipeline)):
    """
    Stores the vote and chains it into the ledger.
    Errors are mapped to status codes by the app's exception handlers.
    """
    await pipeline.submit_vote(vote.voter_id, vote.choice, vote.ts)
    return {"ok": True}


# ------------------------------
# RESULTS
# ------------------------------
@vote_router.get("/results")
async def get_vote_results(results: ResultsAggregator = Depends(get_results)):
    counts = await results.tally()
    return dict(sorted(counts.items()))
