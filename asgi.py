"""
asgi.py -- Application assembly for authgate.

Builds the production app from environment configuration. Importing this
module fails fast if the signing secrets are missing or weak.

Run with:  uvicorn asgi:app
           python main.py serve
"""

from api.main import create_app

app = create_app()
