from .settings import *  # noqa: F401,F403

# Local override to use SQLite for quick local setup
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
    }
}
