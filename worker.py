"""Celery worker entry point: ``celery -A worker.celery_app worker``."""
from app import create_app
from tasks import celery_app

flask_app = create_app()
