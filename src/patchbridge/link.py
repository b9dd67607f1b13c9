"""Device link supervision: discovery, open, read, reconnect.

The serial port is a blocking resource; every blocking call runs in the
loop's default executor and its result resumes on the event loop, so the
rest of the bridge stays single-threaded.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable, Iterable
from enum import StrEnum
from typing import Any, Protocol

import serial
from serial.tools import list_ports

from patchbridge._constants import BAUD_RATE, SERIAL_READ_SIZE, SERIAL_READ_TIMEOUT
from patchbridge.config import DeviceMatch, RetryPolicy
from patchbridge.exceptions import LinkError

_logger = logging.getLogger(__name__)


class LinkState(StrEnum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"
    UNAVAILABLE = "unavailable"


class SerialLink(Protocol):
    """The subset of :class:`serial.Serial` the supervisor relies on."""

    def read(self, size: int = 1) -> bytes:
        ...

    def close(self) -> None:
        ...


SerialOpener = Callable[[str, int], SerialLink]


def open_serial(device: str, baud_rate: int) -> SerialLink:
    """Open *device* with a short read timeout so readers notice a stop request."""
    return serial.Serial(device, baudrate=baud_rate, timeout=SERIAL_READ_TIMEOUT)


def serial_port_info() -> tuple[Any, ...]:
    """
    :return: a tuple of :class:`serial.tools.list_ports_common.ListPortInfo`
    """
    return tuple(list_ports.comports())


def describe_port(port: Any) -> str:
    vid = getattr(port, "vid", None)
    pid = getattr(port, "pid", None)
    return (
        f"{port.device} (manufacturer={getattr(port, 'manufacturer', None) or 'N/A'}, "
        f"vid={f'{vid:04x}' if vid is not None else 'N/A'}, "
        f"pid={f'{pid:04x}' if pid is not None else 'N/A'})"
    )


def is_matching_device(port: Any, match: DeviceMatch) -> bool:
    manufacturer = getattr(port, "manufacturer", None) or ""
    if any(needle in manufacturer for needle in match.manufacturers):
        return True
    vid = getattr(port, "vid", None)
    return vid is not None and vid in match.vendor_ids


def find_device_port(ports: Iterable[Any], match: DeviceMatch) -> Any | None:
    """Return the first port matching *match*, or ``None``."""
    for port in ports:
        if is_matching_device(port, match):
            return port
    return None


class LinkSupervisor:
    """Own the device connection and feed received bytes downstream.

    State machine: ``CLOSED → OPENING → OPEN → CLOSED`` and around again,
    forever. A failed open waits ``retry.delay`` seconds before the next
    attempt; a link that drops while open is reopened straight away.
    ``UNAVAILABLE`` is terminal and only entered when startup discovery
    finds no matching device.
    """

    def __init__(
        self,
        on_data: Callable[[bytes], None],
        *,
        device: str | None = None,
        baud_rate: int = BAUD_RATE,
        retry: RetryPolicy | None = None,
        device_match: DeviceMatch | None = None,
        opener: SerialOpener = open_serial,
        list_ports_fn: Callable[[], Iterable[Any]] = serial_port_info,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_state_change: Callable[[LinkState], None] | None = None,
        read_size: int = SERIAL_READ_SIZE,
    ) -> None:
        self._on_data = on_data
        self._device = device
        self._baud_rate = baud_rate
        self._retry = retry or RetryPolicy()
        self._device_match = device_match or DeviceMatch()
        self._opener = opener
        self._list_ports = list_ports_fn
        self._sleep = sleep
        self._on_state_change = on_state_change
        self._read_size = read_size
        self._state = LinkState.CLOSED
        self._link: SerialLink | None = None
        self._stopping = False
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> LinkState:
        return self._state

    @property
    def device(self) -> str | None:
        return self._device

    def _set_state(self, state: LinkState) -> None:
        if state == self._state:
            return
        _logger.debug("Link state %s -> %s", self._state, state)
        self._state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                _logger.debug("on_state_change callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Run the supervisor as a background task."""
        if self._task is None or self._task.done():
            self._stopping = False
            self._task = asyncio.create_task(self.run(), name="patchbridge-link")
        return self._task

    async def stop(self) -> None:
        """Stop the supervisor and close the device."""
        self._stopping = True
        self._close_link()
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._state != LinkState.UNAVAILABLE:
            self._set_state(LinkState.CLOSED)

    async def run(self) -> None:
        """Discover the device (once), then keep it open until stopped."""
        loop = asyncio.get_running_loop()
        if self._device is None:
            device = await self._discover(loop)
            if device is None:
                self._set_state(LinkState.UNAVAILABLE)
                return
            self._device = device

        device = self._device
        while not self._stopping:
            self._set_state(LinkState.OPENING)
            try:
                link = await loop.run_in_executor(None, self._opener, device, self._baud_rate)
            except (serial.SerialException, OSError) as exc:
                self._set_state(LinkState.CLOSED)
                _logger.error("Error opening serial port %s: %s", device, exc)
                await self._sleep(self._retry.delay)
                continue

            self._link = link
            self._set_state(LinkState.OPEN)
            _logger.info("Serial port %s opened", device)
            try:
                await self._read_until_closed(loop, link, device)
            except LinkError as exc:
                if not self._stopping:
                    _logger.warning("%s. Attempting to reconnect...", exc)
            finally:
                self._close_link()
                self._set_state(LinkState.CLOSED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _discover(self, loop: asyncio.AbstractEventLoop) -> str | None:
        try:
            ports = tuple(await loop.run_in_executor(None, self._list_ports))
        except (serial.SerialException, OSError):
            _logger.error("Error listing serial ports", exc_info=True)
            return None

        _logger.info("Available serial ports:")
        for port in ports:
            _logger.info("- %s", describe_port(port))

        port = find_device_port(ports, self._device_match)
        if port is None:
            _logger.error("Device not found on any serial port")
            return None
        _logger.info("Device found on port %s", port.device)
        return str(port.device)

    async def _read_until_closed(
        self,
        loop: asyncio.AbstractEventLoop,
        link: SerialLink,
        device: str,
    ) -> None:
        while not self._stopping:
            try:
                data = await loop.run_in_executor(None, link.read, self._read_size)
            except (serial.SerialException, OSError, TypeError, AttributeError) as exc:
                # pyserial raises TypeError/AttributeError when the port is closed under a reader
                raise LinkError(f"Serial port {device} closed: {exc}", device=device) from exc
            if not data:
                continue
            _logger.debug("Data received from serial port (raw): %r", data)
            try:
                self._on_data(data)
            except Exception:
                _logger.exception("Unhandled error while processing serial data")

    def _close_link(self) -> None:
        link = self._link
        self._link = None
        if link is None:
            return
        try:
            link.close()
        except (serial.SerialException, OSError):
            _logger.debug("Error closing serial port", exc_info=True)
