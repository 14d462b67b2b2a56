from __future__ import annotations

import pytest

from sdx_guard.circuit_breaker import CommandConfigurationError, EnvOverrideResolver


@pytest.mark.parametrize("raw", ["true", "TRUE", "True", "1", " true "])
def test_force_open_accepts_truthy_text(raw: str) -> None:
    resolver = EnvOverrideResolver({"app_circuit_svc_force_open": raw})

    assert resolver.force_open("svc") is True


@pytest.mark.parametrize("raw", ["false", "FALSE", "0", ""])
def test_force_open_accepts_falsy_text(raw: str) -> None:
    resolver = EnvOverrideResolver({"app_circuit_svc_force_open": raw})

    assert resolver.force_open("svc") is False


def test_missing_values_mean_no_override() -> None:
    resolver = EnvOverrideResolver({})

    assert resolver.force_open("svc") is False
    assert resolver.error_threshold_percentage("svc") is None
    assert resolver.request_volume_threshold("svc") is None
    assert resolver.sleep_window("svc") is None
    assert resolver.timeout("svc") is None


def test_numeric_overrides_are_parsed_and_converted_to_seconds() -> None:
    resolver = EnvOverrideResolver(
        {
            "app_circuit_svc_error_percentage_threshold": "25.5",
            "app_circuit_svc_request_volume_threshold": "12",
            "app_circuit_svc_sleep_window_milliseconds": "1500",
            "app_circuit_svc_timeout": "200",
        }
    )

    assert resolver.error_threshold_percentage("svc") == 25.5
    assert resolver.request_volume_threshold("svc") == 12
    assert resolver.sleep_window("svc") == 1.5
    assert resolver.timeout("svc") == 0.2


def test_overrides_are_scoped_to_their_key() -> None:
    resolver = EnvOverrideResolver({"app_circuit_other_timeout": "200"})

    assert resolver.timeout("svc") is None
    assert resolver.timeout("other") == 0.2


def test_custom_prefix_is_used_for_variable_names() -> None:
    resolver = EnvOverrideResolver({"cb_svc_timeout": "50"}, prefix="cb_")

    assert resolver.variable_name("svc", "timeout") == "cb_svc_timeout"
    assert resolver.timeout("svc") == 0.05


@pytest.mark.parametrize(
    ("setting", "raw"),
    [
        ("force_open", "maybe"),
        ("request_volume_threshold", "-1"),
        ("request_volume_threshold", "many"),
        ("error_percentage_threshold", "101"),
        ("sleep_window_milliseconds", "-5"),
        ("timeout", "0"),
    ],
)
def test_invalid_values_raise_configuration_error(setting: str, raw: str) -> None:
    resolver = EnvOverrideResolver({f"app_circuit_svc_{setting}": raw})
    lookups = {
        "force_open": resolver.force_open,
        "request_volume_threshold": resolver.request_volume_threshold,
        "error_percentage_threshold": resolver.error_threshold_percentage,
        "sleep_window_milliseconds": resolver.sleep_window,
        "timeout": resolver.timeout,
    }

    with pytest.raises(CommandConfigurationError, match=f"app_circuit_svc_{setting}"):
        lookups[setting]("svc")


def test_reads_process_environment_by_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("app_circuit_envkey_timeout", "300")

    assert EnvOverrideResolver().timeout("envkey") == 0.3
