from fastapi import APIRouter

from checkops.api import forms, questions, submissions

api_router = APIRouter()
api_router.include_router(questions.router, tags=["questions"])
api_router.include_router(forms.router, tags=["forms"])
api_router.include_router(submissions.router, tags=["submissions"])
