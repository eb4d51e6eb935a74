from pydantic import BaseModel, ConfigDict, Field, field_validator

ADDRESS_PATTERN = r"^0x[0-9a-fA-F]{40}$"
WORD_PATTERN = r"^0x[0-9a-fA-F]{64}$"
UINT256_MAX = 2**256 - 1


class SignedRequest(BaseModel):
    """Fields shared by every EIP-712 signed write request."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    v: int
    r: str = Field(..., pattern=WORD_PATTERN)
    s: str = Field(..., pattern=WORD_PATTERN)
    signer: str = Field(..., pattern=ADDRESS_PATTERN)
    deadline: int = Field(..., ge=0, le=UINT256_MAX)

    @field_validator("v")
    @classmethod
    def check_recovery_id(cls, v: int) -> int:
        if v not in (0, 1, 27, 28):
            raise ValueError("v must be one of 0, 1, 27, 28")
        return v


class SignedVoteRequest(SignedRequest):
    vote_option: int = Field(..., alias="voteOption", ge=0, le=UINT256_MAX)


class SignedRegisterVoterRequest(SignedRequest):
    address: str = Field(..., pattern=ADDRESS_PATTERN)


class SignedSetVotingPeriodRequest(SignedRequest):
    voting_start: int = Field(..., alias="votingStart", ge=0, le=UINT256_MAX)
    voting_end: int = Field(..., alias="votingEnd", ge=0, le=UINT256_MAX)


SIGNED_REQUEST_MODELS = {
    "vote": SignedVoteRequest,
    "registerVoter": SignedRegisterVoterRequest,
    "setVotingPeriod": SignedSetVotingPeriodRequest,
}
