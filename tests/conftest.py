import socket
import struct
import threading

import pytest

import bedrockstat

REFERENCE_PAYLOAD = "Server1;Survival;419;1.19.0;5;20;abc123;MyServerName"

def make_pong(payload: str, response_id: int = bedrockstat.ID_UNCONNECTED_PONG) -> bytes:
  """Builds an `Unconnected Pong` the way a Bedrock server does."""
  data = payload.encode("utf8")
  return (bytes([response_id]) + struct.pack(">q", 0) + struct.pack(">q", 0x1234)
          + bedrockstat.RAKNET_MAGIC + struct.pack(">H", len(data)) + data)

class Responder:
  """UDP server on localhost answering each datagram with `reply` (or staying silent)."""

  def __init__(self) -> None:
    self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    self.sock.bind(("127.0.0.1", 0))
    self.sock.settimeout(0.1)
    self.port = self.sock.getsockname()[1]
    self.address = "127.0.0.1:%d" % self.port
    self.reply = make_pong(REFERENCE_PAYLOAD)
    self.reply_from = None
    self.received = []
    self._stop = threading.Event()
    self._thread = threading.Thread(target=self._serve, daemon=True)
    self._thread.start()

  def _serve(self) -> None:
    while not self._stop.is_set():
      try:
        data, addr = self.sock.recvfrom(2048)
      except socket.timeout:
        continue
      except OSError:
        return
      self.received.append(data)
      if self.reply is None:
        continue
      if self.reply_from is not None:
        self.reply_from.sendto(self.reply, addr)
      else:
        self.sock.sendto(self.reply, addr)

  def close(self) -> None:
    self._stop.set()
    self._thread.join()
    self.sock.close()

@pytest.fixture
def responder():
  r = Responder()
  yield r
  r.close()

@pytest.fixture
def fast_config():
  return bedrockstat.PingConfig(timeout=2)
