"""Process entry point: `uvicorn main:app`.

Settings (region, credentials, debug flag) are read once here.
"""
from poolsync.api import create_app
from poolsync.logging_setup import setup_logging
from poolsync.reconciler import Reconciler
from poolsync.settings import settings

setup_logging(settings)

app = create_app(Reconciler(settings))
