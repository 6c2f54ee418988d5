# ============================================================================
# src/lab_intelligence/config/base_config.py
# ============================================================================
"""
Base Configuration
- Project data directory
- Report store database
- Knowledge base directory (reference ranges)
"""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings

class BaseSettingsConfig(BaseSettings):
    # Root data directory
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Directory for local databases and logs"
    )

    # Report / value / analysis store
    STORE_DB_PATH: Path = Field(
        default=Path("data/lab_reports.db"),
        description="SQLite database used by SQLiteStore"
    )

    # Knowledge bases shipped with the package
    KNOWLEDGE_DIR: Path = Field(
        default_factory=lambda: Path(__file__).parent.parent / "knowledge",
        description="Clinical knowledge bases (reference ranges)"
    )

    def create_directories(self):
        """Create all necessary directories if they don't exist"""
        dirs = [
            self.DATA_DIR,
            self.STORE_DB_PATH.parent,
        ]
        for directory in dirs:
            directory.mkdir(parents=True, exist_ok=True)

# Global instance
base_settings = BaseSettingsConfig()
