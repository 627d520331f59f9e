"""Dispatch endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...schemas.dispatch import (
    ApplyRequest,
    ApplyResponse,
    ProposeRequest,
    ProposeResponse,
    ReoptimizeRequest,
    ReoptimizeResponse,
)
from ...services.dispatch import service as dispatch_service

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.post("/propose", response_model=ProposeResponse, status_code=status.HTTP_200_OK)
def propose(payload: ProposeRequest) -> ProposeResponse:
    try:
        return dispatch_service.propose_for_date(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error proposing dispatch: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to propose dispatch: {str(exc)}",
        ) from exc


@router.put("/apply", response_model=ApplyResponse, status_code=status.HTTP_200_OK)
def apply(payload: ApplyRequest) -> ApplyResponse:
    try:
        result = dispatch_service.apply_plan(payload)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error applying dispatch plan: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to apply dispatch plan: {str(exc)}",
        ) from exc

    if result.failed and not result.succeeded:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "No orders could be updated", "failed": result.failed},
        )
    return result


@router.post("/reoptimize-route", response_model=ReoptimizeResponse, status_code=status.HTTP_200_OK)
def reoptimize_route(payload: ReoptimizeRequest) -> ReoptimizeResponse:
    try:
        return dispatch_service.reoptimize_for_vehicle(payload)
    except dispatch_service.VehicleNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except Exception as exc:
        logging.exception(f"Error re-optimizing route: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to re-optimize route: {str(exc)}",
        ) from exc
