import sys
from pathlib import Path

# Ensure the exporter/ directory is on sys.path so top-level imports resolve.
_app_dir = str(Path(__file__).resolve().parent)
if _app_dir not in sys.path:
    sys.path.insert(0, _app_dir)

from application import create_app
from core.config import load_settings
from core.logging_config import configure_logging

settings = load_settings()
configure_logging(settings.output_format, settings.log_level)

app = create_app(settings)
