"""Plan catalog endpoints (pricing pages, upgrade prompts)."""

from fastapi import APIRouter, Depends

from plk_api.bootstrap import get_facade
from plk_api.entitlements.facade import EntitlementFacade
from plk_api.entitlements.models import normalize_user_type
from plk_api.schemas import TierInfoResponse, TierListResponse

router = APIRouter(prefix="/v1/catalog", tags=["catalog"])


@router.get("/{user_type}/tiers", response_model=TierListResponse)
def list_tiers(
    user_type: str,
    facade: EntitlementFacade = Depends(get_facade),
) -> TierListResponse:
    """Every plan offered to a user type, with limits and prices.

    Profile types are accepted as stored (e.g. `laboratoire`, `preparateur`);
    unknown types get the candidate plans.
    """
    catalog = facade.catalog
    normalized = normalize_user_type(user_type)
    return TierListResponse(
        catalog_version=catalog.version,
        user_type=normalized,
        tiers=[TierInfoResponse.from_plan(catalog, normalized, tier) for tier in catalog.tiers(normalized)],
    )
