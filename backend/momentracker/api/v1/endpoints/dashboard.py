from __future__ import annotations

from fastapi import APIRouter, Depends

from momentracker.api.deps import get_dashboard_service
from momentracker.api.v1.dto.dashboard import DashboardOut
from momentracker.api.v1.dto.mappers import to_dashboard_row_out
from momentracker.application.dashboard.service import DashboardApplicationService

router = APIRouter()


@router.get("", response_model=DashboardOut)
async def get_dashboard(
    service: DashboardApplicationService = Depends(get_dashboard_service),
) -> DashboardOut:
    rows = await service.build_board()
    return DashboardOut(items=[to_dashboard_row_out(row) for row in rows])
