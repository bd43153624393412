"""Development settings."""
from .base import *  # noqa: F401,F403

DEBUG = True

# Debug toolbar
try:
    import debug_toolbar  # noqa: F401
    INSTALLED_APPS += ["debug_toolbar"]  # noqa: F405
    MIDDLEWARE.insert(0, "debug_toolbar.middleware.DebugToolbarMiddleware")  # noqa: F405
    INTERNAL_IPS = ["127.0.0.1"]
except ImportError:
    pass

# Run chunks back to back when a local worker is attached
DEMO_CONTINUATION_COUNTDOWN = env.int("DEMO_CONTINUATION_COUNTDOWN", default=0)  # noqa: F405

# Logging
LOGGING["root"]["level"] = "DEBUG"  # noqa: F405
