from __future__ import annotations

import asyncio
import logging
import re
from typing import AsyncIterator

from ..core.errors import SessionClosedError

IAC = 255
SB = 250
SE = 240
WILL, WONT, DO, DONT = 251, 252, 253, 254

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]|\x1b[()][0-9A-Za-z]|\x1b[=>]")


def strip_telnet(data: bytes) -> bytes:
    """Remove IAC negotiation sequences, keeping escaped 0xFF bytes."""
    out = bytearray()
    i = 0
    size = len(data)
    while i < size:
        byte = data[i]
        if byte != IAC:
            out.append(byte)
            i += 1
            continue
        if i + 1 >= size:
            break
        command = data[i + 1]
        if command == IAC:
            out.append(IAC)
            i += 2
        elif command in (WILL, WONT, DO, DONT):
            i += 3
        elif command == SB:
            end = data.find(bytes((IAC, SE)), i + 2)
            i = size if end < 0 else end + 2
        else:
            i += 2
    return bytes(out)


def clean_text(data: bytes, encoding: str = "utf-8") -> str:
    text = strip_telnet(data).decode(encoding, errors="replace")
    text = _ANSI_RE.sub("", text)
    return text.replace("\r\n", "\n").replace("\r", "").replace("\x00", "")


class TelnetSession:
    """Line-oriented session over a raw TCP connection."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        encoding: str = "utf-8",
        read_size: int = 4096,
        connect_timeout: float = 30.0,
        logger: logging.Logger | None = None,
    ):
        self._host = host
        self._port = port
        self._encoding = encoding
        self._read_size = read_size
        self._connect_timeout = connect_timeout
        self._logger = logger or logging.getLogger(__name__)
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.wait_for(
            asyncio.open_connection(self._host, self._port),
            timeout=self._connect_timeout,
        )
        self._logger.info("Connected to %s:%d", self._host, self._port)

    async def chunks(self) -> AsyncIterator[str]:
        if self._reader is None:
            raise SessionClosedError("session is not connected")
        while True:
            data = await self._reader.read(self._read_size)
            if not data:
                self._logger.info("Session closed by remote host")
                return
            text = clean_text(data, self._encoding)
            if text.strip():
                yield text

    async def send(self, text: str) -> None:
        if not self.connected:
            raise SessionClosedError("cannot send on a closed session")
        assert self._writer is not None
        line = text if text.endswith("\n") else text + "\n"
        self._writer.write(line.encode(self._encoding))
        await self._writer.drain()

    async def close(self) -> None:
        if self._writer is None:
            return
        writer, self._writer = self._writer, None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as exc:
            self._logger.debug("Error while closing session: %s", exc)
