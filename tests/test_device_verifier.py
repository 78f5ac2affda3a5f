from __future__ import annotations

import pytest

from conftest import FakeHS4, device, status_payload
from hs4_mcp.devices.verifier import DeviceWriteVerifier, evaluate_device_match, status_text_matches
from hs4_mcp.errors import BadRequestError, DeviceNotConvergedError
from hs4_mcp.hs4.client import HS4Client
from hs4_mcp.hs4.normalizer import normalize_status_payload

SWITCH_PAIRS = [("On", 100), ("Off", 0)]


@pytest.fixture
def verifier(hs4_client: HS4Client, no_sleep) -> DeviceWriteVerifier:
    return DeviceWriteVerifier(hs4_client, attempts=4, delay_seconds=0.01, sleep=no_sleep)


@pytest.mark.asyncio
async def test_control_value_converges_on_later_poll(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4
) -> None:
    fake_hs4.status_sequence = [
        status_payload(device(12, status="Off", value=0)),
        status_payload(device(12, status="Off", value=0)),
        status_payload(device(12, status="On", value=100)),
    ]

    result = await verifier.execute_device_set(12, value=100)

    assert result["mode"] == "control_value"
    assert result["verification"]["matched"] is True
    assert result["verification"]["attempts"] == 3
    assert len(fake_hs4.calls("controldevicebyvalue")) == 1


@pytest.mark.asyncio
async def test_set_status_switches_to_control_value_when_pair_exists(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4
) -> None:
    fake_hs4.status_sequence = [
        status_payload(device(12, status="Off", value=0, pairs=SWITCH_PAIRS)),
        status_payload(device(12, status="On", value=100, pairs=SWITCH_PAIRS)),
    ]

    result = await verifier.execute_device_set(12, mode="set_status", value=100)

    assert result["mode"] == "control_value"
    assert result["requestedMode"] == "set_status"
    assert 'control pair "On" maps to value 100' in result["modeAutoSwitch"]
    assert fake_hs4.calls("setdevicestatus") == []


@pytest.mark.asyncio
async def test_failed_preflight_inspection_does_not_block_write(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4, monkeypatch: pytest.MonkeyPatch
) -> None:
    fake_hs4.status_sequence = [status_payload(device(12, status="Dim 40%", value=40))]
    read_device = verifier.read_device
    reads: list[int] = []

    async def flaky_read(ref: int):
        reads.append(ref)
        if len(reads) == 1:
            raise OverflowError("int too large to convert to float")
        return await read_device(ref)

    monkeypatch.setattr(verifier, "read_device", flaky_read)

    result = await verifier.execute_device_set(12, mode="set_status", value=40)

    assert result["mode"] == "set_status"
    assert "modeAutoSwitch" not in result
    assert len(fake_hs4.calls("setdevicestatus")) == 1
    assert result["verification"]["matched"] is True


@pytest.mark.asyncio
async def test_set_status_text_only(verifier: DeviceWriteVerifier, fake_hs4: FakeHS4) -> None:
    fake_hs4.status_sequence = [status_payload(device(5, status="Armed Away"))]

    result = await verifier.execute_device_set(
        5, mode="set_status", status_text=" armed ", source="mcp"
    )

    params = fake_hs4.calls("setdevicestatus")[0].url.params
    assert params["string"] == "armed"
    assert params["source"] == "mcp"
    assert "value" not in params
    assert result["verification"]["checks"]["statusMatch"] is True


@pytest.mark.asyncio
async def test_set_status_falls_back_to_control_value(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4
) -> None:
    stuck = status_payload(device(8, status="Off", value=0, pairs=[("Dim 50%", 50)]))
    fake_hs4.status_sequence = [
        status_payload(device(8, status="Off", value=0)),
        stuck,
        stuck,
        stuck,
        stuck,
        status_payload(device(8, status="Dim 50%", value=50, pairs=[("Dim 50%", 50)])),
    ]

    result = await verifier.execute_device_set(8, mode="set_status", value=50)

    assert result["mode"] == "set_status"
    assert result["fallback"]["attempted"] is True
    assert result["fallback"]["matched"] is True
    assert len(fake_hs4.calls("setdevicestatus")) == 1
    assert len(fake_hs4.calls("controldevicebyvalue")) == 1


@pytest.mark.asyncio
async def test_non_convergence_raises_with_details(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4
) -> None:
    fake_hs4.status_sequence = [status_payload(device(12, status="Off", value=0))]

    with pytest.raises(DeviceNotConvergedError) as excinfo:
        await verifier.execute_device_set(12, value=100)

    error = excinfo.value
    assert error.code == "HS4_ERROR"
    details = error.details or {}
    assert details["verification"]["matched"] is False
    assert details["verification"]["attempts"] == 4
    assert details["verification"]["observed"]["value"] == 0
    assert len(fake_hs4.calls("getstatus")) == 4


@pytest.mark.asyncio
async def test_missing_device_is_not_found_in_checks(
    verifier: DeviceWriteVerifier, fake_hs4: FakeHS4
) -> None:
    fake_hs4.status_sequence = [status_payload()]

    result = await verifier.verify(12, {"value": 1})

    assert result.matched is False
    assert result.observed is None
    assert result.to_dict()["checks"] == {"deviceFound": False}


@pytest.mark.asyncio
async def test_verify_false_skips_polling(verifier: DeviceWriteVerifier, fake_hs4: FakeHS4) -> None:
    result = await verifier.execute_device_set(12, value=1, verify=False)

    assert result["verification"] == {"performed": False}
    assert fake_hs4.calls("getstatus") == []


@pytest.mark.asyncio
async def test_argument_validation(verifier: DeviceWriteVerifier) -> None:
    with pytest.raises(BadRequestError, match="mode=control_value"):
        await verifier.execute_device_set(12)
    with pytest.raises(BadRequestError, match="mode=set_status"):
        await verifier.execute_device_set(12, mode="set_status", status_text="  ")


def test_value_match_through_control_pair_label() -> None:
    found = normalize_status_payload(
        status_payload(device(1, status="On", value=255, pairs=SWITCH_PAIRS))
    ).find(1)
    assert found is not None

    matched, checks = evaluate_device_match(found, {"value": 100})

    assert matched is True
    assert checks.matched_by_control_pair_label == "On"


def test_value_or_status_is_enough() -> None:
    found = normalize_status_payload(status_payload(device(1, status="Locked", value=0))).find(1)
    assert found is not None

    matched, checks = evaluate_device_match(found, {"value": 1, "statusText": "locked"})

    assert matched is True
    assert checks.value_match is False
    assert checks.status_match is True


def test_status_text_matches() -> None:
    assert status_text_matches("Dim 50%", "dim")
    assert not status_text_matches("", "on")
    assert not status_text_matches("On", "Off")
