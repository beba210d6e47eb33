import uvicorn
from typing import List, Optional
from fastapi import FastAPI, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from parking.config import settings
from parking.database import init_db, get_db
from parking.errors import ErrorKind, ParkingError
from parking.schemas import PricingCreate, PricingResponse, VehicleRequest, VehicleSessionResponse, VehicleStatusResponse
from parking import services
import logging

logging.basicConfig(level=settings.log_level)
app = FastAPI(title="Parking Service", version="1.0.0")

ERROR_STATUS = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NO_PRICING: 404,
}

AS_OF = Query(None, description="ISO 8601 instant to evaluate at; defaults to now (UTC).")


def to_http_error(error: ParkingError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS[error.kind], detail=str(error))


@app.on_event("startup")
async def on_startup():
    await init_db()


@app.post("/api/v1/vehicles/entry", response_model=VehicleSessionResponse, status_code=201)
async def register_entry(request: VehicleRequest, db: AsyncSession = Depends(get_db)):
    try:
        logging.info(f"Received entry request for plate: {request.plate}")
        return await services.register_entry(db, request)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while registering entry: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.post("/api/v1/vehicles/departure", response_model=VehicleSessionResponse)
async def register_departure(request: VehicleRequest, db: AsyncSession = Depends(get_db)):
    try:
        logging.info(f"Received departure request for plate: {request.plate}")
        return await services.register_departure(db, request)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while registering departure: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.get("/api/v1/vehicles", response_model=List[VehicleStatusResponse])
async def list_vehicles(as_of: Optional[str] = AS_OF, db: AsyncSession = Depends(get_db)):
    try:
        return await services.list_vehicles(db, as_of)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while listing vehicles: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.get("/api/v1/vehicles/{plate}/quote", response_model=VehicleStatusResponse)
async def quote_vehicle(plate: str, as_of: Optional[str] = AS_OF, db: AsyncSession = Depends(get_db)):
    try:
        return await services.quote_vehicle(db, plate, as_of)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while quoting {plate}: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.post("/api/v1/pricing", response_model=PricingResponse, status_code=201)
async def create_pricing(request: PricingCreate, db: AsyncSession = Depends(get_db)):
    try:
        return await services.create_pricing_policy(db, request)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while storing pricing: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


@app.get("/api/v1/pricing/current", response_model=PricingResponse)
async def current_pricing(as_of: Optional[str] = AS_OF, db: AsyncSession = Depends(get_db)):
    try:
        return await services.current_pricing(db, as_of)
    except ParkingError as e:
        raise to_http_error(e)
    except Exception as e:
        logging.error(f"Unexpected error while fetching pricing: {e}")
        raise HTTPException(status_code=500, detail="Internal Server Error")


if __name__ == "__main__":
    uvicorn.run("parking.main:app", host=settings.host, port=settings.port, reload=settings.reload)
