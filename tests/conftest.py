from pathlib import Path
from typing import Callable

import pytest

from i18n_pilot.config import ProjectConfig, config_from_dict


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ProjectConfig:
    """Конфигурация проекта с корнем во временной директории и без памяти переводов."""
    for name in ("TRANSLATOR_API_KEY", "BAIDU_APPID", "BAIDU_SECRET"):
        monkeypatch.delenv(name, raising=False)
    return config_from_dict(
        {
            "extract": {"workers": 1},
            "memory": {"enabled": False},
        },
        root=tmp_path,
    )


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Создаёт файл относительно tmp_path (с промежуточными директориями)."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        return path

    return _write
