"""Registry requests with basic or bearer authentication.

ref: https://distribution.github.io/distribution/spec/auth/token/
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum

import httpx
from pydantic import BaseModel, ValidationError

from imagegen.oci.errors import (
    ChallengeProtocolError,
    ConfigurationError,
    TokenExchangeError,
)
from imagegen.oci.roundtrip import (
    HEADER_ACCEPT,
    HEADER_AUTHORIZATION,
    HEADER_CONTENT_TYPE,
    RoundTripInfo,
    RoundTripper,
)

logger = logging.getLogger(__name__)

SCHEME_BEARER = "bearer"

CLAIM_REALM = "realm"
CLAIM_SERVICE = "service"
CLAIM_SCOPE = "scope"

AUTH_HEADER_PATTERN = re.compile(r'(realm|service|scope)="([^"]*)', re.IGNORECASE)


class AuthType(Enum):
    NO_AUTH = "none"
    BASIC = "basic"
    BEARER = "bearer"


@dataclass(slots=True)
class RegistryRequest:
    method: str
    url: str
    body: bytes | None = None
    content_type: str | None = None
    accept: str | None = None


class TokenResponse(BaseModel):
    access_token: str


def parse_auth_header(header: str) -> tuple[str, dict[str, str]]:
    """Parse the Www-Authenticate header into its scheme and auth parameters"""
    scheme, _, rest = header.partition(" ")
    params = {
        key.lower(): value for key, value in AUTH_HEADER_PATTERN.findall(rest)
    }
    return scheme.lower(), params


def apply_basic_auth(request: httpx.Request, username: str, password: str):
    """Set the Authorization header on `request` itself, so it is recorded"""
    next(httpx.BasicAuth(username, password).sync_auth_flow(request))


class Transport:
    """Make registry requests, adding credentials according to the auth type.

    Bearer auth does a full challenge/token cycle for every request,
    no tokens are kept between requests.
    """

    def __init__(
        self,
        tripper: RoundTripper | None,
        username: str = "",
        password: str = "",
        auth_type: AuthType = AuthType.NO_AUTH,
    ):
        if auth_type in (AuthType.BASIC, AuthType.BEARER):
            if not username:
                raise ConfigurationError("username required")
            if not password:
                raise ConfigurationError("password required")
        if tripper is None:
            raise ConfigurationError("round tripper required")

        self.tripper = tripper
        self.username = username
        self.password = password
        self.auth_type = auth_type

    @classmethod
    def no_auth(cls, tripper: RoundTripper) -> "Transport":
        return cls(tripper)

    @classmethod
    def basic(cls, tripper: RoundTripper, username: str, password: str) -> "Transport":
        return cls(tripper, username, password, AuthType.BASIC)

    @classmethod
    def bearer(
        cls, tripper: RoundTripper, username: str, password: str
    ) -> "Transport":
        return cls(tripper, username, password, AuthType.BEARER)

    def close(self):
        self.tripper.close()

    def round_trip(self, registry_request: RegistryRequest) -> RoundTripInfo:
        headers = {}
        if registry_request.content_type:
            headers[HEADER_CONTENT_TYPE] = registry_request.content_type
        if registry_request.accept:
            headers[HEADER_ACCEPT] = registry_request.accept
        request = httpx.Request(
            registry_request.method,
            registry_request.url,
            content=registry_request.body,
            headers=headers,
        )

        if self.auth_type is AuthType.BEARER:
            probe = httpx.Request(registry_request.method, registry_request.url)
            info = self.tripper.round_trip(probe)
            if info.response.code != httpx.codes.UNAUTHORIZED:
                raise ChallengeProtocolError("failed to get challenge")
            scheme, params = parse_auth_header(info.response.challenge or "")
            if scheme != SCHEME_BEARER:
                raise ChallengeProtocolError(
                    "server does not support bearer authentication"
                )
            token = self.get_token(params)
            request.headers[HEADER_AUTHORIZATION] = f"Bearer {token}"
        elif self.auth_type is AuthType.BASIC:
            apply_basic_auth(request, self.username, self.password)

        return self.tripper.round_trip(request)

    def get_token(self, params: dict[str, str]) -> str:
        """Exchange the challenge parameters for an access token.

        The params specify:
        - realm: the HTTP endpoint of the token server
        - service: the service to obtain the token for, such as myregistry.azurecr.io
        - scope: the authorization scope the token grants
        """
        realm = params.get(CLAIM_REALM)
        if not realm:
            raise ChallengeProtocolError("challenge does not name a token realm")

        query = {
            claim: params[claim]
            for claim in (CLAIM_SERVICE, CLAIM_SCOPE)
            if claim in params
        }
        request = httpx.Request("GET", realm, params=query)
        if self.username:
            apply_basic_auth(request, self.username, self.password)

        info = self.tripper.round_trip(request)
        if info.response.code != httpx.codes.OK:
            raise TokenExchangeError(
                "get access token failed, "
                f"expected: 200, got: {info.response.code}"
            )
        try:
            return TokenResponse.model_validate_json(info.response.body).access_token
        except ValidationError as e:
            raise TokenExchangeError(f"invalid token response: {e}") from e
