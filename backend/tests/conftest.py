import os
import sys
import tempfile
from pathlib import Path

# Keep settings DB, logs and outputs out of the real user directories.
# Must happen before any application module is imported.
_test_root = Path(tempfile.mkdtemp(prefix="ffmpeg-chat-tests-"))
os.environ.setdefault("FFMPEG_CHAT_HOME", str(_test_root / "home"))
os.environ.setdefault("FFMPEG_CHAT_TMP", str(_test_root / "tmp"))

# Add backend directory to Python path FIRST
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Now import after path is set
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from models import Base

# A real executable that accepts "-c <code>", standing in for ffmpeg
PYTHON = sys.executable


def python_command(code: str) -> str:
    """Command string running code under the stand-in tool."""
    return f'-c "{code}"'


@pytest.fixture
def db_session():
    """Create in-memory database for testing"""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def tmp_media(tmp_path):
    """An existing (fake) media file."""
    path = tmp_path / "input.mp4"
    path.write_bytes(b"\x00" * 1024)
    return path


async def fake_probe(args):
    """ffprobe stand-in: a 640x480 stream without rotation metadata."""
    if 'default=nw=1' in args:
        return 0, "", ""
    if '-show_format' in args:
        return 0, '{"streams": []}', ""
    return 0, '{"streams": [{"width": 640, "height": 480}]}', ""


@pytest.fixture
def services():
    """Fresh composition root, session map and execution service."""
    from services.execution_service import ExecutionService
    from services.ffmpeg_service import FFmpegService
    from services.session_tracker import ExecutionSessionTracker

    ffmpeg = FFmpegService(ffmpeg_path=PYTHON, ffprobe_path="ffprobe-test", probe_runner=fake_probe)
    tracker = ExecutionSessionTracker()
    return ffmpeg, tracker, ExecutionService(ffmpeg, tracker)


@pytest.fixture
def client(services, db_session):
    """API client with the database and shared services overridden."""
    from fastapi.testclient import TestClient

    import dependencies
    from database import get_db
    from init_db import seed_default_settings
    from main import app

    seed_default_settings(db_session)

    def override_get_db():
        yield db_session

    ffmpeg, tracker, execution = services
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_ffmpeg_service] = lambda: ffmpeg
    app.dependency_overrides[dependencies.get_session_tracker] = lambda: tracker
    app.dependency_overrides[dependencies.get_execution_service] = lambda: execution

    # No lifespan: the real database and tool lookup stay untouched
    yield TestClient(app)

    app.dependency_overrides.clear()
