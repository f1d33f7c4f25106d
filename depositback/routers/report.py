"""
DepositBack - Report View Router
Serves the case report view model and hub/spoke navigation.

View state is owned by the page; each request carries it in query
parameters (or the body for navigation) and nothing is stored here.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from depositback.core.config import Settings, get_settings
from depositback.services.report_api import ReportAPIClient, get_report_api_client
from depositback.services.report_view import (
    SHOW_ALL_LEVERAGE,
    SHOW_ALL_STEPS,
    NavigationMode,
    ReportViewState,
    View,
    build_report_view,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/report", tags=["Report"])


# =============================================================================
# Models
# =============================================================================

class NavigateRequest(BaseModel):
    """A navigation event from the page, with the view it was on"""
    action: str  # select | back | toggle_lane
    view: View = View.HUB
    target: Optional[View] = None
    open_lane: Optional[int] = None
    lane: Optional[int] = None


class NavigateResponse(BaseModel):
    view: View
    open_lane: Optional[int] = None
    transition: Optional[dict] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/{case_id}")
async def get_report_view(
    case_id: str,
    request: Request,
    mode: NavigationMode = Query(NavigationMode.ACCORDION),
    view: View = Query(View.HUB),
    lane: Optional[int] = Query(None, ge=1, le=3),
    open_keys: List[str] = Query(default=[], alias="open"),
    checked: List[str] = Query(default=[]),
    show_all_steps: bool = False,
    show_all_leverage: bool = False,
    api: ReportAPIClient = Depends(get_report_api_client),
    settings: Settings = Depends(get_settings),
):
    """
    Report view model for one page view.

    402 from the backend redirects to the review/payment page; any other
    failure is a terminal error state the page offers to reload.
    """
    load = await api.fetch_report(case_id, cookie=request.headers.get("cookie"))
    if load.status == "payment_required":
        return RedirectResponse(load.redirect, status_code=307)
    if not load.is_ready:
        return JSONResponse(
            status_code=502,
            content={"state": "error", "message": load.error, "retry": "reload"},
        )

    open_keys = list(open_keys)
    if show_all_steps:
        open_keys.append(SHOW_ALL_STEPS)
    if show_all_leverage:
        open_keys.append(SHOW_ALL_LEVERAGE)

    state = ReportViewState.from_params(
        mode=mode.value,
        view=view.value,
        lane=lane,
        open_keys=open_keys,
        checked_keys=checked,
        transition_ms=settings.view_transition_ms,
    )
    result = build_report_view(
        load.report,
        load.context,
        state,
        steps_preview_count=settings.steps_preview_count,
    )
    result["case_id"] = case_id
    return result


@router.post("/{case_id}/navigate", response_model=NavigateResponse)
async def navigate(
    case_id: str,
    body: NavigateRequest,
    settings: Settings = Depends(get_settings),
):
    """Apply one navigation event and return the next view with its transition."""
    state = ReportViewState(
        view=body.view,
        open_lane=body.open_lane,
        transition_ms=settings.view_transition_ms,
    )

    if body.action == "select":
        if body.target is None:
            raise HTTPException(status_code=400, detail="target is required for select")
        transition = state.select(body.target)
    elif body.action == "back":
        transition = state.back()
    elif body.action == "toggle_lane":
        if body.lane is None:
            raise HTTPException(status_code=400, detail="lane is required for toggle_lane")
        try:
            state.toggle_lane(body.lane)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        transition = None
    else:
        raise HTTPException(status_code=400, detail=f"Unknown action: {body.action}")

    logger.debug("Case %s navigation %s -> %s", case_id, body.view.value, state.view.value)
    return NavigateResponse(
        view=state.view,
        open_lane=state.open_lane,
        transition=transition.to_dict() if transition else None,
    )
