import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Comma-separated list of browser origins allowed to talk to the server
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:5173,http://127.0.0.1:5173'
    ).split(',') if o.strip()]
    # Race timing (milliseconds of logical time)
    TICK_INTERVAL_MS = int(os.environ.get('TICK_INTERVAL_MS', '1000'))
    SETTINGS_CHECK_DELAY_MS = int(os.environ.get('SETTINGS_CHECK_DELAY_MS', '500'))
    SETTINGS_BROADCAST_DELAY_MS = int(os.environ.get('SETTINGS_BROADCAST_DELAY_MS', '1000'))
    SETTINGS_REBROADCAST_DELAY_MS = int(os.environ.get('SETTINGS_REBROADCAST_DELAY_MS', '500'))
    VIEW_UPDATE_THROTTLE_MS = int(os.environ.get('VIEW_UPDATE_THROTTLE_MS', '100'))
    # Room codes
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '4'))
    # Joining an unknown code creates a guest-path room instead of failing
    AUTO_CREATE_ROOMS = os.environ.get('AUTO_CREATE_ROOMS', 'true').lower() == 'true'
    # How often the server clock advances each room's runtime
    CLOCK_RESOLUTION_MS = int(os.environ.get('CLOCK_RESOLUTION_MS', '50'))
    # Optional: heartbeat interval for room clock logs (sec). 0 disables.
    CLOCK_HEARTBEAT_SEC = int(os.environ.get('CLOCK_HEARTBEAT_SEC', '0'))
    # Close rooms nobody has joined after this long (sec). 0 disables.
    ROOM_IDLE_TIMEOUT_SEC = int(os.environ.get('ROOM_IDLE_TIMEOUT_SEC', '300'))
