# API routers package

from app.routers.analysis import router as analysis_router
from app.routers.sessions import router as sessions_router

# Re-export for easy importing
analysis = analysis_router
sessions = sessions_router
