"""
asgi.py -- Application assembly for Inkwell.

This is the ONLY file that imports from both api/ and web/. It joins the two
layers into a single ASGI app: api/main.py builds the app with the JSON API
and the access gate; web/routes.py contributes the server-rendered pages.

Run with:  uvicorn asgi:app --reload
           python main.py serve
"""

from api.main import app
from web.routes import router as web_router

# Mount the web UI router here, not in api/main.py.
app.include_router(web_router, tags=["Web UI"])
