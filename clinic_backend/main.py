import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from clinic_backend.core import config
from clinic_backend.core.errors import AdmissionError
from clinic_backend.database import Base, engine, ensure_appointment_schema
from clinic_backend.models import appointment, availability, doctor_profile, user  # noqa: F401
from clinic_backend.routes import doctor_routes, patient_routes

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title='Clinic Booking API', debug=config.DEBUG)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.exception_handler(AdmissionError)
async def admission_error_handler(request: Request, exc: AdmissionError):
    logger.info('%s %s rejected: %s', request.method, request.url.path, exc.code)
    return JSONResponse(
        status_code=exc.status_code,
        content={'detail': exc.message, 'code': exc.code},
    )


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


app.include_router(patient_routes.router, prefix='/patient')
app.include_router(doctor_routes.router, prefix='/doctor')
