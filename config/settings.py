import os
import shutil
import sys
from pathlib import Path
from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

class Settings:
    APP_ENV: str = os.getenv("APP_ENV", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = os.getenv("LOG_FILE", "logs/advisor.log")
    MOCK_MODE: bool = os.getenv("MOCK_MODE", "false").lower() == "true"
    POWERSHELL_EXE: str = os.getenv("POWERSHELL_EXE", "powershell.exe")
    POWERSHELL_TIMEOUT: int = int(os.getenv("POWERSHELL_TIMEOUT", "60"))
    MIN_NESTED_BUILD: int = int(os.getenv("MIN_NESTED_BUILD", "10552"))
    NESTED_DISABLE_MARKER: str = os.getenv("NESTED_DISABLE_MARKER", "OFFERNESTEDVIRT=FALSE")
    REPORT_OUTPUT_DIR: Path = Path(os.getenv("REPORT_OUTPUT_DIR", "./reports"))
    VERSION: str = "1.0.0"
    APP_NAME: str = "Nested Virtualization Advisor"

    @classmethod
    def validate(cls) -> list:
        warnings = []
        if cls.MOCK_MODE:
            warnings.append("MOCK MODE active — sample facts, no Hyper-V queries.")
        else:
            if not sys.platform.startswith("win"):
                warnings.append(f"LIVE mode on {sys.platform} — Hyper-V queries need a Windows host.")
            if not cls.is_powershell_available():
                warnings.append(f"{cls.POWERSHELL_EXE} not found on PATH.")
        return warnings

    @classmethod
    def is_powershell_available(cls) -> bool:
        return shutil.which(cls.POWERSHELL_EXE) is not None

settings = Settings()
