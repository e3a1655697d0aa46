import pytest
import pytest_asyncio

from chatrelay.core.config import Settings
from chatrelay.core.database import create_engine, create_session_factory, init_db
from chatrelay.services.chat.store import ChatStore


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        AI_API_KEY="",
        OPENAI_API_KEY="sk-openai",
        ANTHROPIC_API_KEY="sk-anthropic",
        GEMINI_API_KEY="gemini-key",
        XAI_API_KEY="xai-key",
        OPENAI_BASE_URL=None,
        ANTHROPIC_BASE_URL=None,
        GEMINI_BASE_URL=None,
        XAI_BASE_URL=None,
        AI_DEBUG_LOG=True,
    )


@pytest_asyncio.fixture
async def store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'chats.db'}")
    await init_db(engine)
    yield ChatStore(create_session_factory(engine))
    await engine.dispose()
