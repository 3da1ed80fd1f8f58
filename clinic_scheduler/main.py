import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduler.core import config
from clinic_scheduler.database import Base, engine, ensure_availability_schema, ensure_appointment_schema
from clinic_scheduler.models import appointment, availability, blocked_range, provider_rating, user  # noqa: F401
from clinic_scheduler.routes import appointment_routes, availability_routes
from clinic_scheduler.scheduling import tasks

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI(title='Clinic Scheduler API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.on_event('startup')
def start_reconciliation() -> None:
    if config.SWEEPER_ENABLED:
        tasks.start_scheduler()


@app.on_event('shutdown')
def stop_reconciliation() -> None:
    tasks.shutdown_scheduler()


@app.get('/')
def root():
    return {'status': 'Clinic Scheduler API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
