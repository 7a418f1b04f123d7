import os
import tempfile
from pathlib import Path

# Keep the module-level engine off the real data directory during tests
_tmp_dir = Path(tempfile.mkdtemp(prefix="vocab_srs_test_"))
os.environ.setdefault("VOCAB_SRS_DATABASE_URL", f"sqlite+aiosqlite:///{_tmp_dir / 'test.db'}")
