"""API clients - typed wrappers over the Executor for a set of endpoints.

ApiClientV2 authenticates with Basic credentials (service owner or service
key/secret). ApiClientV3 authenticates with an access token, DPoP-bound when
a DPoP key is configured, and scopes most paths by the service ID.
"""

from __future__ import annotations

from typing import Any

import httpx

from api_invoker.credentials import BasicCredentials, format_access_token
from api_invoker.executor import Executor
from api_invoker.models import (
    ApiResponse,
    ApiVersion,
    Client,
    ClientConfiguration,
    ClientErrorHandling,
    ClientListResponse,
    NotFoundHandling,
    Options,
    RequestableScopes,
    Service,
    ServiceListResponse,
)


class ApiClient:
    """Endpoints shared by every API generation.

    Subclasses provide PATHS and the Authorization header values.
    """

    VERSION: ApiVersion
    PATHS: dict[str, str] = {}

    def __init__(
        self,
        configuration: ClientConfiguration,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if configuration is None:
            raise ValueError("configuration is None.")
        if configuration.api_version != self.VERSION:
            raise ValueError(f"Configuration must be set to {self.VERSION.value} for this implementation.")

        self._configuration = configuration
        self._executor = Executor(
            configuration.base_url,
            configuration.settings(),
            dpop_key=configuration.dpop_key,
            transport=transport,
        )

    @property
    def executor(self) -> Executor:
        return self._executor

    @property
    def configuration(self) -> ClientConfiguration:
        return self._configuration

    def _path(self, name: str, **params: Any) -> str:
        return self.PATHS[name].format(**params)

    def _owner_auth(self) -> str | None:
        raise NotImplementedError

    def _service_auth(self) -> str | None:
        raise NotImplementedError

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def echo(self, parameters: dict[str, str] | None = None, options: Options | None = None) -> dict[str, str]:
        """Call the unauthenticated echo endpoint. Returns the echoed parameters."""
        return self._executor.get(
            self._path("echo"),
            query=parameters,
            response_type=dict[str, str],
            options=options,
        )

    def get_service(self, api_key: int, options: Options | None = None) -> Service:
        return self._executor.get(
            self._path("service_get", api_key=api_key),
            auth=self._owner_auth(),
            response_type=Service,
            options=options,
        )

    def get_service_list(
        self, start: int | None = None, end: int | None = None, options: Options | None = None
    ) -> ServiceListResponse:
        return self._executor.get(
            self._path("service_get_list"),
            auth=self._owner_auth(),
            query=_range(start, end),
            response_type=ServiceListResponse,
            options=options,
        )

    def get_service_configuration(self, pretty: bool = True, options: Options | None = None) -> str:
        """The service's discovery document as raw JSON text."""
        return self._executor.get(
            self._path("service_configuration"),
            auth=self._service_auth(),
            query={"pretty": pretty},
            response_type=str,
            options=options,
        )

    def get_client(self, client_id: int | str, options: Options | None = None) -> Client:
        return self._executor.get(
            self._path("client_get", client_id=client_id),
            auth=self._service_auth(),
            response_type=Client,
            options=options,
        )

    def get_client_list(
        self,
        developer: str | None = None,
        start: int | None = None,
        end: int | None = None,
        options: Options | None = None,
    ) -> ClientListResponse:
        query: dict[str, Any] = {}
        if developer is not None:
            query["developer"] = developer
        query.update(_range(start, end))

        return self._executor.get(
            self._path("client_get_list"),
            auth=self._service_auth(),
            query=query,
            response_type=ClientListResponse,
            options=options,
        )

    def delete_client(self, client_id: int | str, options: Options | None = None) -> ApiResponse:
        """Delete a client.

        A 404 counts as success (the client is already gone) and a 4xx with
        an unusable body yields a generated ApiResponse instead of an error.
        """
        return self._executor.delete(
            self._path("client_delete", client_id=client_id),
            auth=self._service_auth(),
            response_type=ApiResponse,
            options=options,
            not_found=NotFoundHandling.RETURN_SUCCESS_RESPONSE,
            client_error=ClientErrorHandling.PARSE_OR_DEFAULT_RESPONSE,
        )

    def get_requestable_scopes(self, client_id: int, options: Options | None = None) -> list[str] | None:
        response = self._executor.get(
            self._path("requestable_scopes_get", client_id=client_id),
            auth=self._service_auth(),
            response_type=RequestableScopes,
            options=options,
        )
        return _extract_scopes(response)

    def set_requestable_scopes(
        self, client_id: int, scopes: list[str] | None, options: Options | None = None
    ) -> list[str] | None:
        """Replace the requestable scopes of a client.

        None and an empty list are equivalent here: both clear the scopes.
        """
        request = RequestableScopes(requestable_scopes=list(scopes or []))
        response = self._executor.post(
            self._path("requestable_scopes_update", client_id=client_id),
            request,
            auth=self._service_auth(),
            response_type=RequestableScopes,
            options=options,
        )
        return _extract_scopes(response)

    def delete_requestable_scopes(self, client_id: int, options: Options | None = None) -> None:
        self._executor.delete(
            self._path("requestable_scopes_delete", client_id=client_id),
            auth=self._service_auth(),
            options=options,
        )


def _range(start: int | None, end: int | None) -> dict[str, Any]:
    if start is None and end is None:
        return {}
    return {"start": start if start is not None else 0, "end": end if end is not None else 5}


def _extract_scopes(response: RequestableScopes | None) -> list[str] | None:
    # The server reports "no scopes" as either null or []; callers see None.
    if response is None or not response.requestable_scopes:
        return None
    return response.requestable_scopes


class ApiClientV2(ApiClient):
    VERSION = ApiVersion.V2
    PATHS = {
        "echo": "/api/misc/echo",
        "service_get": "/api/service/get/{api_key}",
        "service_get_list": "/api/service/get/list",
        "service_configuration": "/api/service/configuration",
        "client_get": "/api/client/get/{client_id}",
        "client_get_list": "/api/client/get/list",
        "client_delete": "/api/client/delete/{client_id}",
        "requestable_scopes_get": "/api/client/extension/requestable_scopes/get/{client_id}",
        "requestable_scopes_update": "/api/client/extension/requestable_scopes/update/{client_id}",
        "requestable_scopes_delete": "/api/client/extension/requestable_scopes/delete/{client_id}",
    }

    def __init__(
        self,
        configuration: ClientConfiguration,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(configuration, transport)
        self._owner_credentials = BasicCredentials(
            configuration.service_owner_api_key, configuration.service_owner_api_secret
        )
        self._service_credentials = BasicCredentials(
            configuration.service_api_key, configuration.service_api_secret
        )

    def _owner_auth(self) -> str | None:
        return self._owner_credentials.format()

    def _service_auth(self) -> str | None:
        return self._service_credentials.format()


class ApiClientV3(ApiClient):
    VERSION = ApiVersion.V3
    PATHS = {
        "echo": "/api/misc/echo",
        "service_get": "/api/{api_key}/service/get",
        "service_get_list": "/api/service/get/list",
        "service_configuration": "/api/{service_id}/service/configuration",
        "client_get": "/api/{service_id}/client/get/{client_id}",
        "client_get_list": "/api/{service_id}/client/get/list",
        "client_delete": "/api/{service_id}/client/delete/{client_id}",
        "requestable_scopes_get": "/api/{service_id}/client/extension/requestable_scopes/get/{client_id}",
        "requestable_scopes_update": "/api/{service_id}/client/extension/requestable_scopes/update/{client_id}",
        "requestable_scopes_delete": "/api/{service_id}/client/extension/requestable_scopes/delete/{client_id}",
    }

    def __init__(
        self,
        configuration: ClientConfiguration,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(configuration, transport)

        if configuration.service_access_token is None:
            raise ValueError("V3 API requires an access token, not a key and secret")

        self._auth = format_access_token(
            configuration.service_access_token, dpop_bound=self._executor.dpop_enabled
        )
        self._service_id = (
            int(configuration.service_api_key) if configuration.service_api_key is not None else None
        )

    @property
    def service_id(self) -> int | None:
        return self._service_id

    def _path(self, name: str, **params: Any) -> str:
        if "{service_id}" in self.PATHS[name] and self._service_id is None:
            raise ValueError("This API requires service_api_key (the service ID) in the configuration")
        return self.PATHS[name].format(service_id=self._service_id, **params)

    def _owner_auth(self) -> str | None:
        return self._auth

    def _service_auth(self) -> str | None:
        return self._auth
