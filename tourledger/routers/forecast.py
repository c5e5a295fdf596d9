from typing import List

from fastapi import APIRouter

from tourledger.api.envelope import success
from tourledger.schemas.common import ActionResponse
from tourledger.schemas.forecast import ForecastResult, ForecastScenario, ScalingRow, ScalingTableRequest
from tourledger.services.forecast import calculate_forecast, generate_scaling_table

router = APIRouter()


@router.post("/calculate", response_model=ActionResponse[ForecastResult])
async def calculate(scenario: ForecastScenario) -> ActionResponse:
    return success(calculate_forecast(scenario))


@router.post("/scaling-table", response_model=ActionResponse[List[ScalingRow]])
async def scaling_table(payload: ScalingTableRequest) -> ActionResponse:
    return success(generate_scaling_table(payload.scenario, payload.truck_counts))
