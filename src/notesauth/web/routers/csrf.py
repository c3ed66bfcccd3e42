from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from notesauth.web.csrf import issue_csrf_token, set_csrf_cookie
from notesauth.web.deps import ConfigDep

router = APIRouter(tags=["csrf"])


class CSRFTokenResponse(BaseModel):
    token: str = Field(..., description="Value to send back in the X-CSRF-Token header")


@router.get(
    "/csrf",
    summary="Issue CSRF token",
    description="Set a fresh CSRF cookie and return the same value for the X-CSRF-Token header.",
    operation_id="getCsrfToken",
)
async def get_csrf_token(config: ConfigDep, response: Response) -> CSRFTokenResponse:
    token = issue_csrf_token()
    set_csrf_cookie(response, token, secure=config.secure_cookies)
    return CSRFTokenResponse(token=token)
