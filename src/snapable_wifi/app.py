"""FastAPI application exposing the Wi-Fi method channel over HTTP."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Mapping

from fastapi import FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ConfigDict, Field

from .authorization import (
    AuthorizationProvider,
    InMemoryAuthorizationProvider,
    PermissionGate,
)
from .channel import (
    CHANNEL_NAME,
    METHOD_CLEAR,
    METHOD_CONNECT,
    METHOD_OPEN_SETTINGS,
    MethodNotImplemented,
    WiFiMethodChannel,
)
from .config import ConfigManager, ServiceSettings, settings_from_environment
from .errors import (
    ChannelError,
    InvalidArgumentsError,
    PlatformError,
    RequestInProgressError,
    SettingsLaunchError,
    UnsupportedError,
)
from .hotspot import ConfigurationBackend, NMCLIBackend, UnavailableBackend
from .settings_launcher import CommandSettingsLauncher, SettingsLauncher
from .system_log import CATEGORY_SYSTEM, SystemLog
from .version import APP_VERSION
from .wifi import WiFiConfigurator

_HTTP_STATUS = {
    InvalidArgumentsError.code: 400,
    RequestInProgressError.code: 409,
    UnsupportedError.code: 501,
    PlatformError.code: 502,
    SettingsLaunchError.code: 500,
}


class ChannelCallPayload(BaseModel):
    arguments: dict[str, Any] | None = None


class WiFiConnectPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ssid: str | None = None
    password: str | None = None
    join_once: bool = Field(True, alias="joinOnce")


class WiFiClearPayload(BaseModel):
    ssid: str | None = None


class AuthorizationPayload(BaseModel):
    state: str


def _http_error(exc: ChannelError) -> HTTPException:
    return HTTPException(status_code=_HTTP_STATUS.get(exc.code, 500), detail=exc.to_dict())


def build_authorization_provider(settings: ServiceSettings) -> AuthorizationProvider:
    if settings.authorization_backend == "corelocation":
        from .corelocation import CoreLocationAuthorizationProvider

        return CoreLocationAuthorizationProvider()
    return InMemoryAuthorizationProvider(settings.initial_authorization)


def build_backend(settings: ServiceSettings) -> ConfigurationBackend:
    if settings.network_backend == "none":
        return UnavailableBackend()
    return NMCLIBackend(settings.interface, timeout=settings.command_timeout)


def create_app(
    config_path: Path | str = Path("data/config.json"),
    *,
    configurator: WiFiConfigurator | None = None,
    settings_launcher: SettingsLauncher | None = None,
    environ: Mapping[str, str] | None = None,
) -> FastAPI:
    logger = logging.getLogger(__name__)

    config_manager = ConfigManager(Path(config_path))
    settings = config_manager.get_settings()
    try:
        settings = settings_from_environment(settings, environ)
    except ValueError as exc:
        logger.warning("Ignoring invalid environment overrides: %s", exc)

    shared_system_log: SystemLog
    if configurator is None:
        shared_system_log = SystemLog(settings.log_path)
        gate = PermissionGate(
            build_authorization_provider(settings),
            timeout=settings.authorization_timeout,
        )
        configurator = WiFiConfigurator(
            gate,
            build_backend(settings),
            system_log=shared_system_log,
        )
    else:
        shared_system_log = configurator.system_log
    if settings_launcher is None:
        settings_launcher = CommandSettingsLauncher(settings.settings_command)
    channel = WiFiMethodChannel(configurator, settings_launcher)
    provider = configurator.gate.provider

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:  # pragma: no cover - framework hook
        shared_system_log.record(
            CATEGORY_SYSTEM,
            "startup",
            "Wi-Fi service starting up.",
            metadata={
                "network_backend": settings.network_backend,
                "authorization_backend": settings.authorization_backend,
            },
        )
        try:
            yield
        finally:
            close = getattr(provider, "close", None)
            if callable(close):
                await run_in_threadpool(close)
            shared_system_log.record(CATEGORY_SYSTEM, "shutdown_complete", "Wi-Fi service stopped.")

    app = FastAPI(title="Snapable Wi-Fi", version=APP_VERSION, lifespan=lifespan)
    app.state.config_manager = config_manager
    app.state.configurator = configurator
    app.state.channel = channel

    async def _invoke(method: str, arguments: Mapping[str, Any] | None) -> object:
        try:
            return await run_in_threadpool(channel.invoke, method, arguments)
        except MethodNotImplemented as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ChannelError as exc:
            raise _http_error(exc) from exc

    @app.get("/api/channel")
    async def describe_channel() -> dict[str, object]:
        return {"name": CHANNEL_NAME, "methods": channel.methods}

    @app.post("/api/channel/{method}")
    async def call_channel_method(method: str, payload: ChannelCallPayload | None = None) -> dict[str, object]:
        arguments = payload.arguments if payload is not None else None
        return {"result": await _invoke(method, arguments)}

    @app.post("/api/wifi/connect")
    async def connect_wifi(payload: WiFiConnectPayload) -> object:
        return await _invoke(
            METHOD_CONNECT,
            {"ssid": payload.ssid, "password": payload.password, "joinOnce": payload.join_once},
        )

    @app.post("/api/wifi/clear")
    async def clear_wifi_configuration(payload: WiFiClearPayload) -> object:
        return await _invoke(METHOD_CLEAR, {"ssid": payload.ssid})

    @app.post("/api/wifi/settings")
    async def open_wifi_settings() -> dict[str, object]:
        return {"success": await _invoke(METHOD_OPEN_SETTINGS, None)}

    @app.get("/api/wifi/log")
    async def get_wifi_log(limit: int = 50) -> dict[str, object]:
        entries = await run_in_threadpool(configurator.get_connection_log, limit)
        return {"entries": entries}

    @app.get("/api/logs")
    async def get_system_log_entries(limit: int = 100, category: str | None = None) -> dict[str, object]:
        entries = await run_in_threadpool(shared_system_log.tail, limit, category=category)
        return {"entries": [entry.to_dict() for entry in reversed(entries)]}

    @app.get("/api/authorization")
    async def get_authorization() -> dict[str, object | None]:
        return {
            "state": provider.current_state().value,
            "pending_request": configurator.gate.pending_request_id,
        }

    @app.post("/api/authorization")
    async def update_authorization(payload: AuthorizationPayload) -> dict[str, object | None]:
        if not isinstance(provider, InMemoryAuthorizationProvider):
            raise HTTPException(
                status_code=409,
                detail="Authorization is managed by the operating system on this host",
            )
        try:
            state = await run_in_threadpool(provider.update, payload.state)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"state": state.value, "pending_request": configurator.gate.pending_request_id}

    @app.get("/api/config")
    async def get_config() -> dict[str, object | None]:
        return config_manager.get_settings().to_dict()

    @app.post("/api/config")
    async def update_config(payload: dict[str, Any]) -> dict[str, object | None]:
        try:
            updated = await run_in_threadpool(config_manager.update_settings, payload)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        logger.info("Configuration updated; changes apply on restart")
        return updated.to_dict()

    return app


__all__ = ["create_app", "build_authorization_provider", "build_backend"]
