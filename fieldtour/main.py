"""
FastAPI application for fieldtour.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker

from fieldtour.api import tours
from fieldtour.config import config
from fieldtour.db import SqlSiteRepository, SqlTourRepository, create_session_factory, init_engine
from fieldtour.services.location import LocationProvider
from fieldtour.services.osrm_service import OSRMService
from fieldtour.services.tour_optimizer import TourOptimizer
from fieldtour.services.tour_service import TourService

logger = logging.getLogger(__name__)


def create_app(
    session_factory: Optional[sessionmaker] = None,
    osrm_service: Optional[OSRMService] = None,
    location_provider: Optional[LocationProvider] = None,
) -> FastAPI:
    """Wire repositories and services explicitly and mount the routers."""
    session_factory = session_factory or create_session_factory(init_engine())
    osrm_service = osrm_service or OSRMService()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await osrm_service.close()

    app = FastAPI(title="fieldtour", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.osrm_service = osrm_service
    app.state.location_provider = location_provider
    app.state.site_repository = SqlSiteRepository(session_factory)
    app.state.tour_service = TourService(SqlTourRepository(session_factory))
    app.state.tour_optimizer = TourOptimizer(osrm_service, use_routing=config.ROUTING_ENABLED)

    app.include_router(tours.router)

    @app.get("/")
    def read_root():
        return {"message": "fieldtour API", "config": config.get_config_dict()}

    return app


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
