"""Root conftest: shared test configuration."""

import os

# Tests never reach real providers: empty keys select placeholder / unavailable modes
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["IDEOGRAM_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["LEONARDO_API_KEY"] = ""
os.environ["RUN_WORKERS_IN_API"] = "false"
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
