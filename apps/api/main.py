"""Thin API launcher.

This is the uvicorn entrypoint. All application logic lives in the hundrednet package.
Run with: uvicorn main:app --reload

The app instance is created here (not in hundrednet.app) so that importing
create_app has no side effects and does not require environment variables.
"""

from hundrednet.app import add_request_id_middleware, create_app
from hundrednet.config import get_settings
from hundrednet.logging import configure_logging

configure_logging(json_format=get_settings().log_json)

app = create_app()
# Add request-id middleware LAST so it runs FIRST (outermost)
add_request_id_middleware(app)

__all__ = ["app"]
