# skyevents/version.py
# Package version; pyproject.toml reads VERSION from here at build time.
VERSION = "0.1.0"
