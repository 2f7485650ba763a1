"""
RFC 9457 Problem Details for HTTP APIs
"""

from typing import List, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

PROBLEM_TYPE_BASE = "https://pharmalink.app/problems"

TYPE_QUOTA_EXCEEDED = "https://iana.org/assignments/http-problem-types#quota-exceeded"
TYPE_RACE_LOST = f"{PROBLEM_TYPE_BASE}/race-lost"
TYPE_PAYMENT_REQUIRED = f"{PROBLEM_TYPE_BASE}/payment-required"
TYPE_NOT_FOUND = f"{PROBLEM_TYPE_BASE}/not-found"
TYPE_INVALID_DURATION = f"{PROBLEM_TYPE_BASE}/invalid-duration"
TYPE_TRACKING_MODE = f"{PROBLEM_TYPE_BASE}/tracking-mode"
TYPE_VALIDATION = f"{PROBLEM_TYPE_BASE}/validation-error"
TYPE_CONFIGURATION = f"{PROBLEM_TYPE_BASE}/configuration-error"
TYPE_INTERNAL = f"{PROBLEM_TYPE_BASE}/internal-error"


class ViolatedPolicy(BaseModel):
    """Violated policy details (RFC 9457 extension)"""
    policy: str
    limit: int
    current: int
    period_key: Optional[str] = None


class ProblemDetails(BaseModel):
    """
    RFC 9457 Problem Details model

    Standard fields:
    - type: URI reference identifying the problem type
    - title: Short, human-readable summary
    - status: HTTP status code
    - detail: Human-readable explanation
    - instance: URI reference identifying the specific occurrence

    Extension fields:
    - violated_policies: exhausted quotas (serialized as "violated-policies")
    """
    type: str
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    violated_policies: List[ViolatedPolicy] = Field(
        default_factory=list,
        alias="violated-policies"
    )

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "type": TYPE_QUOTA_EXCEEDED,
                "title": "Request cannot be satisfied as assigned quota has been exceeded",
                "status": 429,
                "detail": "Monthly quota of 5 for 'posts' reached on tier 'starter'",
                "violated-policies": [
                    {"policy": "starter.posts", "limit": 5, "current": 5, "period_key": "2026-10"}
                ]
            }
        }
    )


def create_problem_details_response(
    *,
    type_uri: str,
    title: str,
    status: int,
    detail: Optional[str] = None,
    instance: Optional[str] = None,
    violated_policies: Optional[List[ViolatedPolicy]] = None,
    headers: Optional[dict[str, str]] = None,
    extensions: Optional[dict] = None,
) -> JSONResponse:
    """
    Create RFC 9457 Problem Details JSON response

    Args:
        type_uri: URI reference identifying the problem type
        title: Short, human-readable summary
        status: HTTP status code
        detail: Human-readable explanation
        instance: URI reference identifying the specific occurrence
        violated_policies: List of violated policies (extension)
        headers: Optional additional headers
        extensions: Extra top-level members (e.g. the fresh fee quote)

    Returns:
        JSONResponse with application/problem+json content type
    """
    problem = ProblemDetails(
        type=type_uri,
        title=title,
        status=status,
        detail=detail,
        instance=instance,
        violated_policies=violated_policies or []
    )

    response_headers = {"Content-Type": "application/problem+json"}
    if headers:
        response_headers.update(headers)

    # by_alias: violated-policies instead of violated_policies
    content = problem.model_dump(by_alias=True, exclude_none=True)
    if not content.get("violated-policies"):
        content.pop("violated-policies", None)
    if extensions:
        content.update(extensions)

    return JSONResponse(
        status_code=problem.status,
        content=content,
        headers=response_headers
    )
