from pydantic import BaseModel, ConfigDict, model_validator

from imagegen.oci.errors import ConfigurationError
from imagegen.oci.transport import AuthType


class Options(BaseModel):
    """Registry to test and how to authenticate against it."""

    model_config = ConfigDict(frozen=True)

    # Registry login server name, such as myregistry.azurecr.io
    login_server: str
    # Registry data endpoint, such as myregistry.southindia.azurecr.io
    data_endpoint: str | None = None
    username: str = ""
    password: str = ""
    # Access the registry over HTTP
    insecure: bool = False
    # Only use basic auth, skip the bearer token exchange
    basic_auth_mode: bool = False
    repository: str | None = None

    @model_validator(mode="after")
    def _check_auth(self):
        if not self.login_server:
            raise ConfigurationError("login server name required")
        if self.username and not self.password:
            raise ConfigurationError("password required with username")
        if self.password and not self.username:
            raise ConfigurationError("username not specified")
        if self.basic_auth_mode and not self.username:
            raise ConfigurationError("cannot use basic auth without username")
        return self

    @property
    def auth_type(self) -> AuthType:
        if not self.username:
            return AuthType.NO_AUTH
        if self.basic_auth_mode:
            return AuthType.BASIC
        return AuthType.BEARER

    @property
    def registry_url(self) -> str:
        if "://" in self.login_server:
            return self.login_server
        scheme = "http" if self.insecure else "https"
        return f"{scheme}://{self.login_server}"
