from assessments.routers import health, interview, sessions

__all__ = [
    "health",
    "interview",
    "sessions",
]
