from typing import Annotated, cast

from fastapi import Depends, Request

from notesauth.app import App
from notesauth.config import Config
from notesauth.core.modules.auth.models import Identity
from notesauth.web.middleware import require_auth


async def get_app(request: Request) -> App:
    return cast(App, request.app.state.app)


async def get_config(request: Request) -> Config:
    return cast(Config, request.app.state.config)


# Type aliases for dependencies
AppDep = Annotated[App, Depends(get_app)]
ConfigDep = Annotated[Config, Depends(get_config)]
IdentityDep = Annotated[Identity, Depends(require_auth)]
