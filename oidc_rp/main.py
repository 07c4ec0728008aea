"""
Demo app: a FastAPI service whose pages require OIDC login.
GET /health (open), GET / and GET /me (login required). Port 8000.
"""
import html
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.responses import HTMLResponse

from oidc_rp.config import load_options
from oidc_rp.plugin import install_exception_handlers, register
from oidc_rp.scheme import require_credentials


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate options, discover the IdP and register the callback route on startup."""
    await register(app, load_options())
    yield


app = FastAPI(title="OIDC RP Demo", version="0.1.0", lifespan=lifespan)
install_exception_handlers(app)


@app.get("/health")
def health():
    """Health check endpoint."""
    return {"status": "ok", "service": "oidc_rp"}


@app.get("/", response_class=HTMLResponse)
def home(credentials: dict = Depends(require_credentials)):
    """Landing page for a logged-in user."""
    sub = html.escape(str(credentials.get("sub", "unknown")))
    return HTMLResponse(
        f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>OIDC RP</title></head>
<body>
  <h1>Logged in</h1>
  <p>Subject: <code>{sub}</code></p>
  <p><a href="/me">Credentials (JSON)</a></p>
</body>
</html>"""
    )


@app.get("/me")
def me(credentials: dict = Depends(require_credentials)):
    """Decoded access-token claims of the current session."""
    return credentials


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "oidc_rp.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
