"""
# A Python client for BLE temperature sensors

Scans for a peripheral advertising a known name, connects, subscribes to its
temperature characteristic and streams the readings to a user interface.
Readings can be recorded into an in-memory history on demand.

Typical usage:

```
from thermolink.ble_interface import BleakRadio, BleTemperatureSession, StaticPermissionGate

session = BleTemperatureSession(BleakRadio(), StaticPermissionGate.all_granted())
session.start()
```

Session output is also available on pypubsub topics through
`PubSubUserInterface`:

- thermolink.status - a status line, sent as `text=`
- thermolink.reading - a decoded temperature reading, sent as `text=`
- thermolink.permission - capabilities the host should request, sent as `capabilities=`
"""

__version__ = "0.1.0"
