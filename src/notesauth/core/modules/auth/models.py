from pydantic import BaseModel, ConfigDict

from notesauth.core.modules.session.models import AuthToken
from notesauth.core.modules.user.models import User


class Identity(BaseModel):
    """Who sent the current request, as resolved from its session cookie.

    Created once per request by the authentication middleware and never mutated.
    """

    user: User
    auth_token: AuthToken

    model_config = ConfigDict(frozen=True)
