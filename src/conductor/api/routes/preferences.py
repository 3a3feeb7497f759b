"""
Preferences API -- the same preferences the chat commands manage.

  GET    /api/v1/preferences         -- List preferences
  POST   /api/v1/preferences         -- Save (upsert by key)
  DELETE /api/v1/preferences/{key}   -- Delete by exact key

Security:
  - Input validation on all fields
  - Auth required
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ...exceptions import PersistenceError
from ...memory.store import PersistenceGateway
from ...preferences.extractor import normalize_key
from ...security import ValidationError, validate_length
from ..middleware.auth import AuthContext, verify_api_key
from ..middleware.rate_limit import check_rate_limit
from ..models.requests import PreferenceRequest
from ..models.responses import PreferenceListResponse, PreferenceResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def _store(request: Request) -> PersistenceGateway:
    return request.app.state.store


@router.get("/preferences", response_model=PreferenceListResponse)
async def list_preferences(
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_rate_limit),
) -> PreferenceListResponse:
    prefs = await _store(request).get_preferences()
    return PreferenceListResponse(
        preferences=[PreferenceResponse(**vars(p)) for p in prefs],
        total=len(prefs),
    )


@router.post("/preferences", response_model=PreferenceResponse)
async def save_preference(
    pref_req: PreferenceRequest,
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_rate_limit),
) -> PreferenceResponse:
    """Upsert a preference; the key is normalised like chat-saved keys."""
    try:
        validate_length(pref_req.key.strip(), "key", min_length=1, max_length=200)
        validate_length(pref_req.value.strip(), "value", min_length=1, max_length=5000)
        validate_length(pref_req.category.strip(), "category", min_length=1, max_length=50)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    key = normalize_key(pref_req.key)
    store = _store(request)
    try:
        await store.upsert_preference(pref_req.category.strip(), key, pref_req.value.strip())
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)

    saved = next(p for p in await store.get_preferences() if p.key == key)
    return PreferenceResponse(**vars(saved))


@router.delete("/preferences/{key}")
async def delete_preference(
    key: str,
    request: Request,
    auth: AuthContext = Depends(verify_api_key),
    _rate_limit: None = Depends(check_rate_limit),
) -> dict:
    store = _store(request)
    if not any(p.key == key for p in await store.get_preferences()):
        raise HTTPException(status_code=404, detail=f"Preference '{key}' not found")
    try:
        await store.delete_preference(key)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=e.message)
    logger.info(f"[Preferences] Deleted {key} via API")
    return {"deleted": key}
