from pathlib import Path
from loguru import logger
from models.assessment import Report


def write_json(report: Report, path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    logger.info(f"JSON report written: {path}")
    return path
