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
import argparse
import logging
import sys
from typing import List, Optional

import bedrockstat

DEFAULT_ADDRESS = "localhost:%d" % bedrockstat.DEFAULT_BEDROCK_PORT

def build_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(prog="bedrockstat", description="Query a Minecraft Bedrock server with an Unconnected Ping")
  parser.add_argument("address", nargs="?", default=DEFAULT_ADDRESS,
                      help="host[:port] of the server (default: %(default)s)")
  parser.add_argument("-p", "--port", type=int, default=bedrockstat.DEFAULT_BEDROCK_PORT,
                      help="port used when the address has none (default: %(default)s)")
  parser.add_argument("-t", "--timeout", type=float, default=bedrockstat.DEFAULT_TIMEOUT,
                      help="seconds to wait for a response (default: %(default)s)")
  parser.add_argument("--raknet", action="store_true",
                      help="send a full RakNet ping with timestamp and magic")
  parser.add_argument("--verify-sender", action="store_true",
                      help="reject responses that don't come from the server")
  parser.add_argument("-v", "--verbose", action="store_true", help="log protocol details")
  parser.add_argument("--version", action="version", version="%(prog)s " + bedrockstat.__version__)
  return parser

def main(argv: Optional[List[str]] = None) -> int:
  parser = build_parser()
  args = parser.parse_args(argv)

  logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                      format="%(asctime)s %(name)s %(levelname)s: %(message)s")

  packet = bedrockstat.build_ping_packet() if args.raknet else bedrockstat.DEFAULT_PING_PACKET
  try:
    config = bedrockstat.PingConfig(timeout=args.timeout, packet=packet, port=args.port,
                                    verify_sender=args.verify_sender)
  except ValueError as e:
    parser.error(str(e))

  try:
    status = bedrockstat.ping(args.address, config)
  except bedrockstat.PingError as e:
    print("Error pinging server: %s (%s)" % (e, e.status), file=sys.stderr)
    return 1

  print("Server ID: %s" % status.server_id)
  print("Game Type: %s" % status.game_type)
  print("Protocol Version: %d" % status.protocol_version)
  print("Version Name: %s" % status.version_name)
  print("Players: %d/%d" % (status.players_current, status.players_max))
  print("MOTD: %s" % status.motd)
  print("Latency: %d ms" % status.latency)
  print("Connection Status: %s" % status.status)
  return 0

if __name__ == "__main__":
  sys.exit(main())
