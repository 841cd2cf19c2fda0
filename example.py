import bedrockstat

# Below is an example using the ping() function.
# If the server can't be queried, a PingError subclass is raised.
address = 'localhost:19132'
print('Minecraft Bedrock server status of %s:' % address)
try:
  status = bedrockstat.ping(address, bedrockstat.PingConfig(timeout=5))
except bedrockstat.PingError as e:
  print('Server is offline! (%s: %s)' % (e.status, e))
else:
  print('Server is online running version %s with %s out of %s players.' % (status.version_name, status.players_current, status.players_max))
  print('Message of the day: %s' % status.stripped_motd)
  print('Latency: %sms (%s)' % (status.latency, status.status))
