from qvote.engine.errors import VoteRejected
from qvote.engine.identity import Credentials, SocialVoter, TokenVoter
from qvote.engine.results import aggregate, compute_results
from qvote.engine.settlement import VoteSettlementService, submit_vote
from qvote.engine.validator import ProposedLine, validate_ballot

__all__ = [
    "VoteRejected",
    "Credentials",
    "SocialVoter",
    "TokenVoter",
    "aggregate",
    "compute_results",
    "VoteSettlementService",
    "submit_vote",
    "ProposedLine",
    "validate_ballot",
]
