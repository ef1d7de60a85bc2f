import sys
from pathlib import Path

# Ensure the project root is on sys.path so `app` and `tests` packages resolve
PROJECT_ROOT = Path(__file__).resolve().parents[1]
root_str = str(PROJECT_ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

# Import fixtures so they are available to all tests
from tests.fixtures.stream_fixtures import *  # noqa: E402, F403
