import pytest

from rcucontrol.api.firmware import FirmwareImage, FirmwareState, FirmwareTimings
from rcucontrol.exceptions import (RcuBoardMismatchError, RcuFirmwareImageError, RcuFirmwareNotConfirmedError,
                                   RcuTransferFailedError)
from rcucontrol.io.frame import RcuErrorCode

from conftest import error, frame


BARCODE = "8930000210043"


def image_text(barcode: str = BARCODE, lines: int = 3, size: int = 400) -> str:
    body = [":" + bytes((i + j) % 256 for j in range(size)).hex().upper() for i in range(lines)]
    return "\n".join([f":0205,{barcode}", *body]) + "\n"


@pytest.fixture()
def firmware(protocol):
    protocol.firmware.timings = FirmwareTimings(packet_retries=3, retry_backoff=0.01, packet_timeout=0.2,
                                                settle_min=0, settle_max=0, confirm_attempts=3,
                                                confirm_interval=0.01, confirm_timeout=0.2, slave_grace=0.01)
    return protocol.firmware


# ============================
# IMAGE
# ============================

def test_parse_image():
    image = FirmwareImage.parse(image_text(lines=2, size=4))
    assert image.has_header
    assert image.version == (2, 5)
    assert image.version_label == "2.5"
    assert image.barcode == BARCODE
    assert image.model == "RCU-48IN-16RL"
    assert image.first_line == bytes([2, 5])
    assert image.body == [bytes([0, 1, 2, 3]), bytes([1, 2, 3, 4])]
    assert image.line_count == 3
    assert image.checksum == 6 + 10


def test_checksum_wraps_at_16_bits():
    image = FirmwareImage.parse(":0100,1\n:" + "FF" * 300 + "\n")
    assert image.checksum == (255 * 300) & 0xFFFF


@pytest.mark.parametrize("text", [
    "",
    "\n  \n",
    ":0205,123\n0011\n",
    ":0205,123,4\n:00\n",
    ":025,123\n:00\n",
    ":0205,123\n:0G\n",
    ":0205,123\n:001\n",
])
def test_malformed_images(text):
    with pytest.raises(RcuFirmwareImageError):
        FirmwareImage.parse(text)


def test_image_without_header():
    image = FirmwareImage.parse(":0102\n:AA\n")
    assert not image.has_header
    assert image.version_label == "unknown"
    assert image.first_line == bytes([1, 2])
    assert image.checksum == 0xAA


def test_board_mismatch(firmware):
    with pytest.raises(RcuBoardMismatchError) as e:
        firmware.validate_image(image_text(barcode="8930000200013"), BARCODE)
    assert e.value.expected == f"RCU-48IN-16RL ({BARCODE})"
    assert e.value.actual == "RCU-32AO (8930000200013)"


def test_settle_time(protocol):
    assert protocol.firmware.settle_time(10) == 5
    assert protocol.firmware.settle_time(400) == 20
    assert protocol.firmware.settle_time(10000) == 30


# ============================
# UPDATE
# ============================

async def test_update(fake_unit, unit, firmware):
    fake_unit.on(1, 6, frame(1, 6, [0]))
    fake_unit.on(1, 1, frame(1, 1, [12]))
    progress = []
    text = image_text()
    result = await firmware.update(unit, text, on_progress=lambda percent, label: progress.append(percent))

    assert result.success
    assert result.version == "2.5"
    assert result.packets_sent == 4
    assert result.states == [FirmwareState.VALIDATING_IMAGE, FirmwareState.SENDING_HEADER,
                             FirmwareState.STREAMING_BODY, FirmwareState.SENDING_CHECKSUM,
                             FirmwareState.AWAITING_REBOOT, FirmwareState.DONE]

    # Lines are never split, so the third 400-byte line starts a new packet
    header, first, second, checksum = fake_unit.payloads(1, 6)
    assert header == bytes([2, 5])
    assert (len(first), len(second)) == (800, 400)
    image = FirmwareImage.parse(text)
    assert checksum == bytes([image.checksum & 0xFF, image.checksum >> 8])
    assert result.checksum == image.checksum

    assert progress[0] == 5
    assert progress[-4:] == [95, 98, 99, 100]
    assert progress == sorted(progress)
    assert max(p for p in progress if p < 95) == 90


async def test_update_board_mismatch_sends_nothing(fake_unit, unit, firmware):
    with pytest.raises(RcuBoardMismatchError):
        await firmware.update(unit, image_text(barcode="8930000200013"))
    assert fake_unit.requests() == []


async def test_update_explicit_barcode(fake_unit, unit, firmware):
    with pytest.raises(RcuBoardMismatchError):
        await firmware.update(unit, image_text(), expected_barcode="8930000200013")
    assert fake_unit.requests() == []


async def test_update_malformed_image_sends_nothing(fake_unit, unit, firmware):
    with pytest.raises(RcuFirmwareImageError):
        await firmware.update(unit, f":0205,{BARCODE}\n:XYZ\n")
    assert fake_unit.requests() == []


async def test_transfer_failure_after_retries(fake_unit, unit, firmware):
    fake_unit.on(1, 6, error(1, 6, RcuErrorCode.HEX_FILE_CRC))
    with pytest.raises(RcuTransferFailedError):
        await firmware.update(unit, image_text())
    # Only the header packet, attempted once per retry
    assert fake_unit.payloads(1, 6) == [bytes([2, 5])] * 3


async def test_retry_recovers(fake_unit, unit, firmware):
    replies = iter([[], [frame(1, 6, [0])]])
    fake_unit.on(1, 6, lambda _: next(replies, [frame(1, 6, [0])]))
    fake_unit.on(1, 1, frame(1, 1, [10]))
    result = await firmware.update(unit, image_text(lines=1))
    assert result.success
    assert fake_unit.payloads(1, 6)[0] == fake_unit.payloads(1, 6)[1] == bytes([2, 5])


async def test_not_confirmed(fake_unit, unit, firmware):
    fake_unit.on(1, 6, frame(1, 6, [0]))
    fake_unit.on(1, 1, frame(1, 1, [3]))
    with pytest.raises(RcuFirmwareNotConfirmedError):
        await firmware.update(unit, image_text(lines=1))
    assert len(fake_unit.requests(1, 1)) == 3


async def test_confirm_after_failed_polls(fake_unit, unit, firmware):
    replies = iter([[], [frame(1, 1, [11])]])
    fake_unit.on(1, 1, lambda _: next(replies))
    assert await firmware.confirm(unit)
    assert len(fake_unit.requests(1, 1)) == 2
