from pathlib import Path

import pytest

from snapable_wifi.authorization import (
    AuthorizationState,
    InMemoryAuthorizationProvider,
    PermissionGate,
)
from snapable_wifi.classification import CAPABILITY_UNAVAILABLE_MESSAGE
from snapable_wifi.errors import (
    InvalidArgumentsError,
    PlatformError,
    RequestInProgressError,
    UnsupportedError,
)
from snapable_wifi.hotspot import (
    CapabilityUnsupported,
    ConfigurationBackend,
    HotspotConfiguration,
    HotspotError,
    HotspotErrorCode,
    UnavailableBackend,
    WiFiError,
)
from snapable_wifi.models import ConnectionStatus
from snapable_wifi.system_log import SystemLog
from snapable_wifi.wifi import WiFiConfigurator


class FakeConfigurationBackend(ConfigurationBackend):
    def __init__(self) -> None:
        self.applied: list[HotspotConfiguration] = []
        self.removed: list[str] = []
        self.apply_error: Exception | None = None
        self.remove_error: Exception | None = None

    def apply(self, configuration: HotspotConfiguration) -> None:
        self.applied.append(configuration)
        if self.apply_error is not None:
            raise self.apply_error

    def remove(self, ssid: str) -> None:
        self.removed.append(ssid)
        if self.remove_error is not None:
            raise self.remove_error


@pytest.fixture
def backend() -> FakeConfigurationBackend:
    return FakeConfigurationBackend()


@pytest.fixture
def provider() -> InMemoryAuthorizationProvider:
    return InMemoryAuthorizationProvider(AuthorizationState.AUTHORIZED_WHEN_IN_USE)


@pytest.fixture
def configurator(
    tmp_path: Path,
    provider: InMemoryAuthorizationProvider,
    backend: FakeConfigurationBackend,
) -> WiFiConfigurator:
    return WiFiConfigurator(
        PermissionGate(provider),
        backend,
        system_log=SystemLog(tmp_path / "system_log.jsonl"),
    )


@pytest.mark.parametrize("arguments", [None, {}, {"ssid": ""}, {"ssid": 42}])
def test_connect_rejects_missing_ssid_before_any_os_call(
    configurator: WiFiConfigurator,
    backend: FakeConfigurationBackend,
    provider: InMemoryAuthorizationProvider,
    arguments: object,
) -> None:
    with pytest.raises(InvalidArgumentsError) as excinfo:
        configurator.submit(arguments)

    assert excinfo.value.code == "INVALID_ARGS"
    assert backend.applied == []
    assert provider.requests == 0
    assert configurator.in_flight is None


@pytest.mark.parametrize("arguments", [None, {}, {"ssid": ""}])
def test_clear_rejects_missing_ssid(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend, arguments: object
) -> None:
    with pytest.raises(InvalidArgumentsError):
        configurator.clear_configuration(arguments)

    assert backend.removed == []


def test_whitespace_ssid_is_passed_through(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    result = configurator.connect("  ", None)

    assert result.success is True
    assert backend.applied[0].ssid == "  "


def test_connect_rejects_non_boolean_join_once(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    with pytest.raises(InvalidArgumentsError):
        configurator.submit({"ssid": "Home", "joinOnce": "yes"})

    assert backend.applied == []


def test_authorized_connect_applies_immediately(
    configurator: WiFiConfigurator,
    backend: FakeConfigurationBackend,
    provider: InMemoryAuthorizationProvider,
) -> None:
    future = configurator.submit({"ssid": "Office", "password": "hunter22"})

    assert future.done()
    assert future.result().to_dict() == {"success": True, "status": "connected"}
    assert provider.requests == 0
    assert backend.applied == [HotspotConfiguration("Office", "hunter22", join_once=True)]


def test_empty_password_submits_open_network(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    result = configurator.connect("CafeWifi", "", True)

    assert result.success is True
    configuration = backend.applied[0]
    assert configuration.ssid == "CafeWifi"
    assert configuration.passphrase is None
    assert not configuration.secured
    assert configuration.join_once is True


def test_password_is_trimmed_and_join_once_respected(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    configurator.connect("HomeNet", "  secret1  ", False)

    configuration = backend.applied[0]
    assert configuration.passphrase == "secret1"
    assert configuration.secured
    assert configuration.join_once is False


def test_join_once_defaults_to_true(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    configurator.submit({"ssid": "Home", "joinOnce": None}).result()

    assert backend.applied[0].join_once is True


def test_connect_waits_for_authorization_decision(
    tmp_path: Path, backend: FakeConfigurationBackend
) -> None:
    provider = InMemoryAuthorizationProvider(AuthorizationState.NOT_DETERMINED)
    configurator = WiFiConfigurator(
        PermissionGate(provider),
        backend,
        system_log=SystemLog(tmp_path / "log.jsonl"),
    )

    future = configurator.submit({"ssid": "Home", "password": "password1"})

    assert not future.done()
    assert backend.applied == []
    assert provider.requests == 1

    provider.update(AuthorizationState.AUTHORIZED_WHEN_IN_USE)
    provider.update(AuthorizationState.AUTHORIZED_WHEN_IN_USE)

    assert future.result(timeout=1.0).status is ConnectionStatus.CONNECTED
    assert len(backend.applied) == 1
    assert configurator.in_flight is None


def test_denied_authorization_still_attempts_join(
    tmp_path: Path, backend: FakeConfigurationBackend
) -> None:
    provider = InMemoryAuthorizationProvider(AuthorizationState.NOT_DETERMINED)
    configurator = WiFiConfigurator(
        PermissionGate(provider),
        backend,
        system_log=SystemLog(tmp_path / "log.jsonl"),
    )
    backend.apply_error = HotspotError(HotspotErrorCode.USER_DENIED, "The user denied the join")

    future = configurator.submit({"ssid": "Home"})
    provider.update(AuthorizationState.DENIED)

    result = future.result(timeout=1.0)
    assert result.to_dict() == {"success": False, "status": "user_denied"}
    assert len(backend.applied) == 1
    events = [entry["event"] for entry in configurator.get_connection_log()]
    assert "authorization_not_granted" in events


def test_second_request_while_pending_is_rejected(
    tmp_path: Path, backend: FakeConfigurationBackend
) -> None:
    provider = InMemoryAuthorizationProvider(AuthorizationState.NOT_DETERMINED)
    configurator = WiFiConfigurator(
        PermissionGate(provider),
        backend,
        system_log=SystemLog(tmp_path / "log.jsonl"),
    )
    first = configurator.submit({"ssid": "First"})

    with pytest.raises(RequestInProgressError):
        configurator.submit({"ssid": "Second"})

    provider.update(AuthorizationState.AUTHORIZED_ALWAYS)
    assert first.result(timeout=1.0).success is True
    assert [configuration.ssid for configuration in backend.applied] == ["First"]

    configurator.submit({"ssid": "Second"}).result(timeout=1.0)
    assert [configuration.ssid for configuration in backend.applied] == ["First", "Second"]


def test_capability_error_is_normalised(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    backend.apply_error = HotspotError(HotspotErrorCode.SYSTEM_CONFIGURATION_DENIED, "denied")

    result = configurator.connect("Home")

    assert result.status is ConnectionStatus.CAPABILITY_NOT_AVAILABLE
    assert result.message == CAPABILITY_UNAVAILABLE_MESSAGE


def test_helper_failure_text_is_normalised_like_capability_error(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    backend.apply_error = WiFiError("Connection invalid")

    result = configurator.connect("Home")

    assert result.status is ConnectionStatus.CAPABILITY_NOT_AVAILABLE
    assert result.message == CAPABILITY_UNAVAILABLE_MESSAGE


def test_already_associated_reports_success(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    backend.apply_error = HotspotError(HotspotErrorCode.ALREADY_ASSOCIATED, "already")

    result = configurator.connect("Home")

    assert result.to_dict() == {"success": True, "status": "already_connected"}


def test_unknown_domain_error_fails_future_and_releases_slot(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    backend.apply_error = HotspotError(HotspotErrorCode.INVALID_WPA_PASSPHRASE, "bad passphrase")

    future = configurator.submit({"ssid": "Home", "password": "short"})

    with pytest.raises(PlatformError) as excinfo:
        future.result()
    assert excinfo.value.details == 4
    assert configurator.in_flight is None
    events = [entry["event"] for entry in configurator.get_connection_log()]
    assert events[0] == "connect_error"


def test_unavailable_backend_reports_unsupported(tmp_path: Path, provider: InMemoryAuthorizationProvider) -> None:
    configurator = WiFiConfigurator(
        PermissionGate(provider),
        UnavailableBackend(),
        system_log=SystemLog(tmp_path / "log.jsonl"),
    )

    result = configurator.connect("Home")

    assert result.success is False
    assert result.status is ConnectionStatus.UNSUPPORTED
    with pytest.raises(UnsupportedError) as excinfo:
        configurator.clear_configuration({"ssid": "Home"})
    assert excinfo.value.code == "UNSUPPORTED"


def test_clear_configuration_skips_authorization(tmp_path: Path, backend: FakeConfigurationBackend) -> None:
    provider = InMemoryAuthorizationProvider(AuthorizationState.NOT_DETERMINED)
    configurator = WiFiConfigurator(
        PermissionGate(provider),
        backend,
        system_log=SystemLog(tmp_path / "log.jsonl"),
    )

    result = configurator.clear_configuration({"ssid": "Home"})

    assert result.to_dict() == {"success": True}
    assert backend.removed == ["Home"]
    assert provider.requests == 0


def test_clear_configuration_reports_backend_failure(
    configurator: WiFiConfigurator, backend: FakeConfigurationBackend
) -> None:
    backend.remove_error = WiFiError("Error: connection deletion failed")

    with pytest.raises(PlatformError) as excinfo:
        configurator.clear_configuration({"ssid": "Home"})

    assert "deletion failed" in excinfo.value.message


def test_default_backend_remove_is_unsupported() -> None:
    class ApplyOnlyBackend(ConfigurationBackend):
        def apply(self, configuration: HotspotConfiguration) -> None:
            return None

    with pytest.raises(CapabilityUnsupported):
        ApplyOnlyBackend().remove("Home")


def test_connection_log_is_restored_from_system_log(
    tmp_path: Path, provider: InMemoryAuthorizationProvider, backend: FakeConfigurationBackend
) -> None:
    log_path = tmp_path / "system_log.jsonl"
    first = WiFiConfigurator(PermissionGate(provider), backend, system_log=SystemLog(log_path))
    first.connect("Home", "password1")

    second = WiFiConfigurator(PermissionGate(provider), backend, system_log=SystemLog(log_path))

    entries = second.get_connection_log()
    assert [entry["event"] for entry in entries] == ["connect_success", "connect_attempt"]
    assert "password1" not in str(entries)
    assert second.get_connection_log(limit=1)[0]["event"] == "connect_success"
