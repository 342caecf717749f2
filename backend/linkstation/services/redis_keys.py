ROOM_KEY = "room:{room_id}"
ROOM_NAME_KEY = "room:name:{name_lower}"
ROOM_SET_KEY = "rooms:ids"
DELETED_ROOM_KEY = "room:deleted:{room_id}"

ACTIVE_USER_KEY = "active:{username}"
ACTIVE_USER_SET_KEY = "active:users"

KICK_MARKER_KEY = "marker:kick:{username}"
ROOM_DELETE_MARKER_KEY = "marker:room:{room_id}"

ADMIN_SESSION_SET_KEY = "admin:sessions"
ADMIN_TOKEN_KEY = "admin:token:{token}"
ADMIN_PASSWORD_KEY = "admin:password"
APP_SHUTDOWN_KEY = "app:shutdown"
