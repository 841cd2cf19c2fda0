import pytest

import bedrockstat
from bedrockstat import MalformedResponseError, ServerStatus, parse_payload, parse_response

from conftest import REFERENCE_PAYLOAD, make_pong

def test_reference_payload():
  status = parse_payload(REFERENCE_PAYLOAD)

  assert status.server_id == "Server1"
  assert status.game_type == "Survival"
  assert status.protocol_version == 419
  assert status.version_name == "1.19.0"
  assert status.players_current == 5
  assert status.players_max == 20
  assert status.motd == "MyServerName"
  assert status.latency is None

def test_real_world_payload_ignores_extra_fields():
  payload = "MCPE;§aDedicated Server;594;1.20.12;3;10;13253860892328930865;Bedrock level;Survival;1;19132;19133;"
  status = parse_payload(payload)

  assert status.server_id == "MCPE"
  assert status.game_type == "§aDedicated Server"
  assert status.protocol_version == 594
  assert status.version_name == "1.20.12"
  assert (status.players_current, status.players_max) == (3, 10)
  assert status.motd == "Bedrock level"

def test_non_numeric_fields_default_to_zero():
  status = parse_payload("Server1;Survival;beta;1.19.0;;20x;abc123;MyServerName")

  assert status.protocol_version == 0
  assert status.players_current == 0
  assert status.players_max == 0
  assert status.version_name == "1.19.0"

@pytest.mark.parametrize("value, expected", [
  ("20", 20), ("+3", 3), ("-1", -1), ("20x", 0), ("", 0), ("1.5", 0),
  (" 7 ", 0), (" 20", 0), ("20\n", 0), ("2_0", 0), ("\u0662\u0660", 0),
])
def test_parse_int_or_default(value, expected):
  assert bedrockstat.parse_int_or_default(value) == expected

@pytest.mark.parametrize("players_max", ["2_0", " 20", "20\n", "\u0662\u0660"])
def test_non_decimal_players_max_is_zero(players_max):
  status = parse_response(make_pong("Server1;Survival;419;1.19.0;5;%s;abc123;MyServerName" % players_max))

  assert status.players_max == 0
  assert status.players_current == 5

@pytest.mark.parametrize("payload", ["", "a;b;1;v;2", "MCPE"])
def test_too_few_fields(payload):
  with pytest.raises(MalformedResponseError, match="invalid response data"):
    parse_payload(payload)

@pytest.mark.parametrize("payload", ["Server1;Survival;419;1.19.0;5;20", "Server1;Survival;419;1.19.0;5;20;abc123"])
def test_missing_motd_field_is_malformed(payload):
  with pytest.raises(MalformedResponseError, match="missing field 7"):
    parse_payload(payload)

def test_response_too_short():
  with pytest.raises(MalformedResponseError, match="response too short") as excinfo:
    parse_response(make_pong("")[:34])
  assert excinfo.value.response_id is None

def test_unexpected_response_id_carries_byte():
  with pytest.raises(MalformedResponseError, match="unexpected response id") as excinfo:
    parse_response(make_pong(REFERENCE_PAYLOAD, response_id=0x1d))

  assert excinfo.value.response_id == 0x1d
  assert excinfo.value.status is bedrockstat.ConnStatus.UNKNOWN

def test_header_only_response_is_invalid_data():
  with pytest.raises(MalformedResponseError, match="invalid response data"):
    parse_response(make_pong(""))

def test_response_payload_starts_after_header():
  status = parse_response(make_pong(REFERENCE_PAYLOAD))

  assert status == parse_payload(REFERENCE_PAYLOAD)

def test_invalid_utf8_does_not_raise():
  status = parse_response(make_pong(REFERENCE_PAYLOAD) + b"\xff\xfe")

  assert status.motd.startswith("MyServerName")

def test_stripped_motd():
  status = parse_payload("MCPE;x;1;v;0;1;id;§l§6Gold §rWorld")

  assert status.motd == "§l§6Gold §rWorld"
  assert status.stripped_motd == "Gold World"

def test_status_equality_ignores_latency():
  a = parse_payload(REFERENCE_PAYLOAD)
  b = parse_payload(REFERENCE_PAYLOAD)
  b.latency = 12

  assert a == b
  assert a != parse_payload(REFERENCE_PAYLOAD.replace("MyServerName", "Other"))
  assert "server_id='Server1'" in repr(a)
  assert isinstance(a, ServerStatus)

def test_default_ping_packet():
  packet = bedrockstat.DEFAULT_PING_PACKET

  assert len(packet) == 16
  assert packet[0] == 0x01
  assert packet[1:15] == bytes(14)
  assert packet[15] == 0x01

def test_build_ping_packet():
  packet = bedrockstat.build_ping_packet(timestamp=1000, client_guid=2)

  assert len(packet) == 33
  assert packet[0] == bedrockstat.ID_UNCONNECTED_PING
  assert packet[1:9] == (1000).to_bytes(8, "big")
  assert packet[9:25] == bedrockstat.RAKNET_MAGIC
  assert packet[25:] == (2).to_bytes(8, "big")

def test_response_metadata_passed_to_constructor():
  status = parse_response(make_pong(REFERENCE_PAYLOAD), latency=12, address=("127.0.0.1", 19132))

  assert status.latency == 12
  assert status.address == ("127.0.0.1", 19132)
  assert status.status is bedrockstat.ConnStatus.SUCCESS
