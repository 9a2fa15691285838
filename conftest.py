"""
Root pytest configuration for Magnus Sync.

Sets up Python path and test environment variables for all test directories.
"""

import os
import sys
from pathlib import Path

# Set test environment variables before anything else imports settings
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("OBSERVABILITY_LOG_LEVEL", "DEBUG")
os.environ.setdefault("MAGNUS_SERVER_NAME", "test-server")
os.environ.setdefault("POSTGRES_PASSWORD", "test_password_for_pytest_only")

# Project root
project_root = Path(__file__).parent

# Add src directory to path for imports (magnus_common, magnus_sync, etc.)
src_path = project_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))
