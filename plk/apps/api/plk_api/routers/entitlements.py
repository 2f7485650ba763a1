"""Entitlement endpoints.

Quota and race outcomes map to problem responses here (429 / 409 / 402).
Configuration and caller errors are raised and mapped by the app's
exception handlers.
"""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from plk_api.bootstrap import get_facade
from plk_api.context import account_id_var, feature_key_var
from plk_api.entitlements.facade import EntitlementFacade
from plk_api.entitlements.fees import MISSION_CONTACT_FEATURE
from plk_api.entitlements.problem_details import (
    TYPE_PAYMENT_REQUIRED,
    TYPE_QUOTA_EXCEEDED,
    TYPE_RACE_LOST,
    ViolatedPolicy,
    create_problem_details_response,
)
from plk_api.schemas import (
    AccountStatusResponse,
    CommitResponse,
    ConfirmContactRequest,
    ConfirmContactResponse,
    FeeQuoteResponse,
    QuotaDecisionResponse,
    SetCountRequest,
)

router = APIRouter(prefix="/v1/entitlements", tags=["entitlements"])
logger = logging.getLogger(__name__)


@router.get("/{account_id}", response_model=AccountStatusResponse)
def get_account_status(
    account_id: str,
    facade: EntitlementFacade = Depends(get_facade),
) -> AccountStatusResponse:
    """Quota decision for every metered feature of the account."""
    account_id_var.set(account_id)
    status = facade.account_status(account_id)

    return AccountStatusResponse(
        account_id=account_id,
        user_type=status.account.user_type,
        tier=status.account.tier,
        next_tier=status.next_tier,
        catalog_version=facade.catalog.version,
        analytics=status.analytics,
        flags=status.flags,
        features={
            feature_key: QuotaDecisionResponse.from_decision(decision)
            for feature_key, decision in status.decisions.items()
        },
    )


@router.get("/{account_id}/features/{feature_key}", response_model=QuotaDecisionResponse)
def get_feature_decision(
    account_id: str,
    feature_key: str,
    facade: EntitlementFacade = Depends(get_facade),
) -> QuotaDecisionResponse:
    """Read-only quota decision (safe for UI previews)."""
    account_id_var.set(account_id)
    feature_key_var.set(feature_key)
    return QuotaDecisionResponse.from_decision(facade.evaluate(account_id, feature_key))


@router.post(
    "/{account_id}/features/{feature_key}/commit",
    response_model=CommitResponse,
    responses={409: {"description": "Race lost"}, 429: {"description": "Quota exceeded"}},
)
def commit_feature_usage(
    account_id: str,
    feature_key: str,
    facade: EntitlementFacade = Depends(get_facade),
):
    """
    Record one use of an incremental feature after the caller's domain write.

    A 409 or 429 means the usage was not recorded; the caller must undo or
    void its domain write.
    """
    account_id_var.set(account_id)
    feature_key_var.set(feature_key)
    outcome = facade.commit(account_id, feature_key)

    if outcome.status == "QUOTA_EXCEEDED":
        return create_problem_details_response(
            type_uri=TYPE_QUOTA_EXCEEDED,
            title="Request cannot be satisfied as assigned quota has been exceeded",
            status=429,
            detail=(
                f"Quota of {int(outcome.max)} for '{feature_key}' reached "
                f"on plan '{outcome.user_type}.{outcome.tier}' (period {outcome.period_key})"
            ),
            violated_policies=[
                ViolatedPolicy(
                    policy=f"{outcome.user_type}.{outcome.tier}.{feature_key}",
                    limit=int(outcome.max),
                    current=outcome.used,
                    period_key=outcome.period_key,
                )
            ],
            extensions={"upgrade_to": facade.catalog.next_tier(outcome.user_type, outcome.tier)},
        )

    if outcome.status == "RACE_LOST":
        return create_problem_details_response(
            type_uri=TYPE_RACE_LOST,
            title="Usage not recorded",
            status=409,
            detail=(
                f"A concurrent request used the last '{feature_key}' allowance; "
                "re-evaluate before retrying"
            ),
        )

    return CommitResponse.from_outcome(outcome)


@router.put("/{account_id}/features/{feature_key}/count", response_model=QuotaDecisionResponse)
def set_feature_count(
    account_id: str,
    feature_key: str,
    body: SetCountRequest,
    facade: EntitlementFacade = Depends(get_facade),
) -> QuotaDecisionResponse:
    """Store the authoritative count of an absolute feature (e.g. photos)."""
    account_id_var.set(account_id)
    feature_key_var.set(feature_key)
    return QuotaDecisionResponse.from_decision(facade.set_count(account_id, feature_key, body.count))


@router.get("/{account_id}/mission-contact/quote", response_model=FeeQuoteResponse)
def quote_mission_contact(
    account_id: str,
    mission_days: int = Query(..., description="Mission length in days (>= 1)"),
    facade: EntitlementFacade = Depends(get_facade),
) -> FeeQuoteResponse:
    """Advisory contact quote; confirmation recomputes it."""
    account_id_var.set(account_id)
    feature_key_var.set(MISSION_CONTACT_FEATURE)
    return FeeQuoteResponse.from_quote(facade.quote_mission_contact(account_id, mission_days))


@router.post(
    "/{account_id}/mission-contact/confirm",
    response_model=ConfirmContactResponse,
    responses={402: {"description": "Payment required"}, 409: {"description": "Race lost"}},
)
def confirm_mission_contact(
    account_id: str,
    body: ConfirmContactRequest,
    facade: EntitlementFacade = Depends(get_facade),
):
    """Confirm a mission contact against a freshly recomputed quote."""
    account_id_var.set(account_id)
    feature_key_var.set(MISSION_CONTACT_FEATURE)
    confirmation = facade.confirm_mission_contact(
        account_id, body.mission_days, accepted_amount=body.accepted_amount
    )
    quote = FeeQuoteResponse.from_quote(confirmation.quote).model_dump()

    if confirmation.status == "PAYMENT_REQUIRED":
        return create_problem_details_response(
            type_uri=TYPE_PAYMENT_REQUIRED,
            title="Payment Required",
            status=402,
            detail=(
                f"This contact is not included in the '{confirmation.quote.tier}' plan; "
                f"accept {quote['amount']} {quote['currency']} to confirm"
            ),
            extensions={"quote": quote},
        )

    if confirmation.status == "RACE_LOST":
        return create_problem_details_response(
            type_uri=TYPE_RACE_LOST,
            title="Contact not recorded",
            status=409,
            detail="A concurrent request used the last included contact; review the new quote",
            extensions={"quote": quote},
        )

    return JSONResponse(
        content=ConfirmContactResponse.from_confirmation(confirmation).model_dump()
    )
