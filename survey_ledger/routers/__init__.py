"""API router package."""

from survey_ledger.routers import admin, candidates, surveys, users

__all__ = ["admin", "candidates", "surveys", "users"]
