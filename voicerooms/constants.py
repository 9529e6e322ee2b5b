# Room lifecycle constants (durations in minutes unless suffixed)

STATE_SCHEMA_VERSION = 1
ROOM_RECORD_VERSION = 1

# Guest rooms
GUEST_ROOM_MIN_DURATION = 10
GUEST_ROOM_MAX_DURATION = 30
GUEST_ROOM_MAX_MEMBERS = 15

# OpenLink rooms
OPENLINK_GRACE_PERIOD = 5
OPENLINK_MIN_EXTENSION = 5
OPENLINK_MAX_EXTENSION = 10
OPENLINK_ABSOLUTE_MAX = 15

# Grace periods at or below this many seconds count as "standard".
OPENLINK_STANDARD_GRACE_S = OPENLINK_GRACE_PERIOD * 60

# Member capacity
UNLIMITED_CAPACITY_THRESHOLD = 1000

# Server capacity
MIN_SERVER_CAPACITY = 50
MAX_SERVER_CAPACITY = 5000
MAX_ACTIVITY_BONUS = 500

# Hosting service endpoints
PATH_CREATE_ROOM = "/api/rooms/create"
PATH_DELETE_ROOM = "/api/rooms/{room_id}/delete"
PATH_CREATE_GUEST = "/api/rooms/create-guest"
PATH_EXPIRE_GUEST = "/api/rooms/{room_id}/expire"
PATH_CREATE_OPENLINK = "/api/rooms/create-openlink"
PATH_REMOVE_OPENLINK = "/api/rooms/{room_id}/remove-openlink"
PATH_SYNC_ROOMS = "/api/rooms/sync"

# Local events
EV_GUEST_ROOM_EXPIRED = "guest_room_expired"
EV_OPENLINK_ROOM_REMOVED = "openlink_room_removed"
EV_OPENLINK_CONNECTION_ENDED = "openlink_connection_ended"

# A removal timer firing this many seconds before the stored deadline is
# stale (the deadline moved after it was armed).
TIMER_SLACK_S = 1.0
