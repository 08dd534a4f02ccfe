from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv
from yarl import URL

APP_DIR = Path(__file__).parent
ROOT_DIR = APP_DIR.parent

_FALSY = ("0", "false", "no", "off")


@dataclass(frozen=True)
class WavefrontConfig:
    address: URL
    token: str
    verify_ssl: bool = True
    timeout_s: float = 60.0
    search_page_size: int = 100


@dataclass(frozen=True)
class Config:
    wavefront: WavefrontConfig


class EnvironConfigFactory:
    def __init__(self, environ: dict[str, str] | None = None) -> None:
        if environ is None:
            # load a .env file for local development
            load_dotenv(dotenv_path=ROOT_DIR / ".env")
            self._environ: dict[str, str] = dict(os.environ)
        else:
            self._environ = environ

    def create(self) -> Config:
        return Config(wavefront=self.create_wavefront())

    def create_wavefront(self) -> WavefrontConfig:
        address = self._environ["WAVEFRONT_ADDRESS"].strip().rstrip("/")
        if "://" not in address:
            # bare host names are served over https
            address = f"https://{address}"
        verify_ssl = self._environ.get("WAVEFRONT_VERIFY_SSL", "true")
        return WavefrontConfig(
            address=URL(address),
            token=self._environ["WAVEFRONT_TOKEN"],
            verify_ssl=verify_ssl.strip().lower() not in _FALSY,
            timeout_s=float(
                self._environ.get("WAVEFRONT_TIMEOUT_S", WavefrontConfig.timeout_s)
            ),
            search_page_size=int(
                self._environ.get(
                    "WAVEFRONT_SEARCH_PAGE_SIZE", WavefrontConfig.search_page_size
                )
            ),
        )
