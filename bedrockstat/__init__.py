# bedrockstat - A Minecraft Bedrock server status checker
# Copyright (C) 2016-2022 Lloyd Dilley, Felix Ern (MindSolve)
# http://www.dilley.me/
#
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License along
# with this program; if not, write to the Free Software Foundation, Inc.,
# 51 Franklin Street, Fifth Floor, Boston, MA 02110-1301 USA.
import logging
import re
import socket
import struct
from time import time, perf_counter
from enum import Enum
from typing import Optional, Tuple, Union

__version__ = "1.0.0"

log = logging.getLogger("bedrockstat")
log.addHandler(logging.NullHandler())

DEFAULT_BEDROCK_PORT = 19132  # default UDP port for Bedrock/MCPE servers
DEFAULT_TIMEOUT = 20          # default read deadline in seconds

ID_UNCONNECTED_PING = 0x01
ID_UNCONNECTED_PONG = 0x1c

MAX_RESPONSE_SIZE = 512
RESPONSE_HEADER_SIZE = 35
MIN_PAYLOAD_FIELDS = 6

RAKNET_MAGIC = bytes([0x00, 0xff, 0xff, 0x00, 0xfe, 0xfe, 0xfe, 0xfe, 0xfd, 0xfd, 0xfd, 0xfd, 0x12, 0x34, 0x56, 0x78])

# Packet ID 0x01, zeroed ping id, trailing 0x01
DEFAULT_PING_PACKET = bytes([0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x01])

class ConnStatus(Enum):
  """
Contains possible connection states.

- `SUCCESS`: The ping succeeded (request sent, response received & parsed)
- `CONNFAIL`: The server could not be reached. Wrong hostname or port, or a network error?
- `TIMEOUT`: No response arrived before the deadline. (Server offline? Firewall rules OK?)
- `UNKNOWN`: A datagram arrived, but it is not a valid `Unconnected Pong`.
  """

  def __str__(self) -> str:
    return str(self.name)

  SUCCESS = 0
  """The ping succeeded (request sent, response received & parsed)"""

  CONNFAIL = -1
  """The server could not be reached. (Wrong hostname or port, or a network error?)"""

  TIMEOUT = -2
  """No response arrived before the deadline. (Server offline? Firewall rules OK?)"""

  UNKNOWN = -3
  """A datagram arrived, but it is not a valid `Unconnected Pong`."""

class PingError(Exception):
  """Base class of all errors raised by `ping()`."""

  status = ConnStatus.UNKNOWN
  """Coarse connection state this error corresponds to"""

class ResolutionError(PingError):
  """The address could not be parsed or resolved to a UDP endpoint."""
  status = ConnStatus.CONNFAIL

class SocketError(PingError):
  """The local UDP socket could not be created or connected."""
  status = ConnStatus.CONNFAIL

class SendError(PingError):
  """The ping packet could not be sent in full."""
  status = ConnStatus.CONNFAIL

class PingTimeoutError(PingError, TimeoutError):
  """No datagram arrived before the read deadline."""
  status = ConnStatus.TIMEOUT

class ReceiveError(PingError):
  """Receiving failed for a reason other than the deadline."""
  status = ConnStatus.CONNFAIL

class MalformedResponseError(PingError):
  """The received datagram is not a well-formed `Unconnected Pong`."""
  status = ConnStatus.UNKNOWN

  def __init__(self, message: str, response_id: Optional[int] = None) -> None:
    super().__init__(message)
    self.response_id: Optional[int] = response_id
    """first byte of the offending datagram, if the opcode was wrong"""

class PingConfig:
  """
  Settings for a single `ping()` call.

  :param timeout: Read deadline in seconds, armed once the request was sent
  :param packet: Request datagram, must start with `0x01`
  :param port: Port used when the address does not carry one
  :param verify_sender: Raise `ReceiveError` for a response that doesn't come from the resolved server
  """

  def __init__(self, timeout: float = DEFAULT_TIMEOUT, packet: bytes = DEFAULT_PING_PACKET,
               port: int = DEFAULT_BEDROCK_PORT, verify_sender: bool = False) -> None:
    if timeout <= 0:
      raise ValueError("timeout must be positive, got %r" % timeout)
    if not packet or packet[0] != ID_UNCONNECTED_PING:
      raise ValueError("ping packet must start with 0x%02x" % ID_UNCONNECTED_PING)
    if not 0 < port < 65536:
      raise ValueError("port out of range: %r" % port)

    self.timeout: float = timeout
    """read deadline in seconds"""
    self.packet: bytes = bytes(packet)
    """request datagram"""
    self.port: int = port
    """port used when the address has none"""
    self.verify_sender: bool = verify_sender
    """raise `ReceiveError` unless the response came from the resolved server endpoint"""

  def __repr__(self) -> str:
    return "PingConfig(timeout=%r, packet=%r, port=%r, verify_sender=%r)" % (
      self.timeout, self.packet.hex(), self.port, self.verify_sender)

class ServerStatus:
  """Parsed `Unconnected Pong` of a Bedrock server."""

  status = ConnStatus.SUCCESS
  """Connection state of a ping that produced this result, mirrors `PingError.status`"""

  _FIELDS = ("server_id", "game_type", "protocol_version", "version_name",
             "players_current", "players_max", "motd")

  def __init__(self, server_id: str, game_type: str, protocol_version: int, version_name: str,
               players_current: int, players_max: int, motd: str,
               latency: Optional[int] = None, address: Optional[tuple] = None) -> None:
    self.server_id: str = server_id
    """server identity/edition string, e.g. "MCPE" or a first MOTD line"""
    self.game_type: str = game_type
    """reported game mode/edition tag"""
    self.protocol_version: int = protocol_version
    """network protocol number"""
    self.version_name: str = version_name
    """human-readable version string"""
    self.players_current: int = players_current
    """current number of players online"""
    self.players_max: int = players_max
    """maximum player capacity"""
    self.motd: str = motd
    """secondary message of the day, unchanged server response (including formatting codes)"""
    self.latency: Optional[int] = latency
    """round-trip time in milliseconds, None when parsed offline"""
    self.address: Optional[tuple] = address
    """endpoint the response came from"""

  @property
  def stripped_motd(self) -> str:
    """message of the day, stripped of all formatting ("human-readable")"""
    return strip_formatting(self.motd)

  def __eq__(self, other: object) -> bool:
    if not isinstance(other, ServerStatus):
      return NotImplemented
    return all(getattr(self, f) == getattr(other, f) for f in self._FIELDS)

  def __repr__(self) -> str:
    return "ServerStatus(%s)" % ", ".join("%s=%r" % (f, getattr(self, f)) for f in self._FIELDS)

def strip_formatting(raw_motd: str) -> str:
  """ Removes the `§x` formatting codes from a MOTD. """
  return re.sub(r"§.", "", raw_motd)

def parse_int_or_default(value: str, default: int = 0) -> int:
  """
  Lenient integer parsing for the numeric pong fields.
  Some servers send non-numeric placeholders, those must not fail the whole ping.

  Only an optional sign followed by ASCII digits is accepted, no whitespace,
  digit separators or non-ASCII digits.

  :param value: Decimal string from the payload
  :param default: Value used when `value` is not a decimal integer
  """
  if not re.fullmatch(r"[+-]?[0-9]+", value):
    log.debug("Non-numeric field %r, using %d", value, default)
    return default
  return int(value)

def _field(fields: list, index: int, name: str) -> str:
  if index >= len(fields):
    raise MalformedResponseError("missing field %d (%s) in response data, got %d fields" % (index, name, len(fields)))
  return fields[index]

def parse_payload(payload_str: str, latency: Optional[int] = None, address: Optional[tuple] = None) -> ServerStatus:
  """
  Parses the semicolon-delimited server id string of an `Unconnected Pong`.

  Field order: edition/server id, game type, protocol version, version name,
  current players, max players, server unique id, MOTD line 2, and optional
  fields (gamemode, ports, ...) that are ignored.

  :param payload_str: The decoded payload, without the 35 byte header
  :param latency: Round-trip time in ms, if measured
  :param address: Endpoint the payload came from, if received over the network
  """
  fields = payload_str.split(";")

  if len(fields) < MIN_PAYLOAD_FIELDS:
    raise MalformedResponseError("invalid response data")

  return ServerStatus(
    server_id=_field(fields, 0, "server id"),
    game_type=_field(fields, 1, "game type"),
    protocol_version=parse_int_or_default(fields[2]),
    version_name=_field(fields, 3, "version name"),
    players_current=parse_int_or_default(fields[4]),
    players_max=parse_int_or_default(fields[5]),
    motd=_field(fields, 7, "motd"),
    latency=latency,
    address=address,
  )

def parse_response(response: Union[bytes, bytearray], latency: Optional[int] = None,
                   address: Optional[tuple] = None) -> ServerStatus:
  """
  Validates and parses a raw `Unconnected Pong` datagram.

  response packet:
  byte - 0x1C - Unconnected Pong
  long - timestamp
  long - server GUID
  16 byte - magic
  short - Server ID string length
  string - Server ID string

  :param response: The bytes actually received, not the whole receive buffer
  :param latency: Round-trip time in ms, if measured
  :param address: Endpoint the datagram came from
  """
  if len(response) < RESPONSE_HEADER_SIZE:
    raise MalformedResponseError("response too short")

  response_id = response[0]
  if response_id != ID_UNCONNECTED_PONG:
    raise MalformedResponseError("unexpected response id: 0x%02x" % response_id, response_id=response_id)

  payload_str = bytes(response[RESPONSE_HEADER_SIZE:]).decode("utf8", errors="replace")
  return parse_payload(payload_str, latency, address)

def build_ping_packet(timestamp: Optional[int] = None, client_guid: int = 0x02) -> bytes:
  """
  Builds a complete RakNet `Unconnected Ping` packet.

  See https://wiki.vg/Raknet_Protocol#Unconnected_Ping

  :param timestamp: Ping id, defaults to the current unix time in ms
  :param client_guid: Client GUID
  """
  if timestamp is None:
    timestamp = int(time()*1000)

  # Packet ID - 0x01
  req_data = bytearray([ID_UNCONNECTED_PING])
  # timestamp as signed long (64-bit)
  req_data += struct.pack(">q", timestamp)
  # RakNet MAGIC (0x00ffff00fefefefefdfdfdfd12345678)
  req_data += RAKNET_MAGIC
  # Client GUID - as signed long (64-bit)
  req_data += struct.pack(">q", client_guid)
  return bytes(req_data)

def split_address(address: str, default_port: int = DEFAULT_BEDROCK_PORT) -> Tuple[str, int]:
  """
  Splits `host:port`, `[v6-host]:port` or a bare host into host and port.

  :param address: Address of the server
  :param default_port: Port used when the address does not carry one
  """
  port_str = None
  if address.startswith("["):
    host, sep, rest = address[1:].partition("]")
    if not sep or (rest and not rest.startswith(":")):
      raise ResolutionError("invalid address: %r" % address)
    port_str = rest[1:] or None
  elif address.count(":") == 1:
    host, port_str = address.split(":")
  else:
    # bare hostname, IPv4 address or unbracketed IPv6 address
    host = address

  if not host:
    raise ResolutionError("missing host in address: %r" % address)

  if port_str is None:
    return host, default_port

  try:
    port = int(port_str)
  except ValueError:
    raise ResolutionError("invalid port in address: %r" % address) from None
  if not 0 < port < 65536:
    raise ResolutionError("port out of range in address: %r" % address)
  return host, port

def resolve(address: str, default_port: int = DEFAULT_BEDROCK_PORT) -> Tuple[int, tuple]:
  """
  Resolves an address to a UDP endpoint.

  :return: socket family and socket address of the first result
  """
  host, port = split_address(address, default_port)
  try:
    infos = socket.getaddrinfo(host, port, 0, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
  except (socket.gaierror, UnicodeError) as e:
    raise ResolutionError("could not resolve %r: %s" % (address, e)) from e
  if not infos:
    raise ResolutionError("no UDP address for %r" % address)

  family, _, _, _, sockaddr = infos[0]
  return family, sockaddr

def ping(address: str, config: Optional[PingConfig] = None) -> ServerStatus:
  """
  Queries a Bedrock server (Minecraft PE, Windows 10 or Education Edition) once.
  The protocol is based on the RakNet `Unconnected Ping`/`Unconnected Pong` exchange.

  Exactly one packet is sent and one response is awaited, nothing is retried.
  Raises a `PingError` subclass on failure.

  :param address: `host:port` of the server, the port defaults to `config.port`
  :param config: Timeout, packet and port settings, `PingConfig()` if omitted
  """
  if config is None:
    config = PingConfig()

  family, sockaddr = resolve(address, config.port)
  log.debug("Resolved %s to %s", address, sockaddr)

  # Create socket with type DGRAM (for UDP)
  try:
    sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
  except OSError as e:
    raise SocketError("could not create socket: %s" % e) from e

  try:
    try:
      sock.connect(sockaddr)
    except OSError as e:
      raise SocketError("could not connect socket to %s: %s" % (sockaddr, e)) from e

    start_time = perf_counter()
    try:
      sent = sock.send(config.packet)
    except OSError as e:
      raise SendError("could not send ping: %s" % e) from e
    if sent != len(config.packet):
      raise SendError("short write: sent %d of %d bytes" % (sent, len(config.packet)))
    log.debug("Sent %d byte ping to %s", sent, sockaddr)

    sock.settimeout(config.timeout)
    try:
      response_buffer, response_addr = sock.recvfrom(MAX_RESPONSE_SIZE)
    except socket.timeout as e:
      raise PingTimeoutError("no response within %s seconds" % config.timeout) from e
    except OSError as e:
      raise ReceiveError("could not receive response: %s" % e) from e
    latency = round((perf_counter() - start_time) * 1000)
    log.debug("Received %d bytes from %s", len(response_buffer), response_addr)

    # connect() filters other peers on most platforms, not all
    if config.verify_sender and response_addr[:2] != sockaddr[:2]:
      raise ReceiveError("unexpected sender %s, expected %s" % (response_addr, sockaddr))
  finally:
    sock.close()

  return parse_response(response_buffer, latency, response_addr)
