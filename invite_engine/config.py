import os
import shutil
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

import imageio_ffmpeg

from .errors import MissingAssetsError

REPO_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# --- ASSETS ---
BACKGROUND_VIDEO = "background.mp4"
FONT_FILES = ("Brightwall.ttf", "Opensauce.ttf", "Roxborough CF.ttf")
DEFAULT_FONT = "Opensauce.ttf"

# Origins used by the Capacitor mobile shells
DEFAULT_CORS_ORIGINS = ("https://localhost", "capacitor://localhost")


def _env_bool(environ: Mapping[str, str], name: str, default: bool = False) -> bool:
    value = environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    """Positive float from the environment, falling back on junk"""
    try:
        value = float(environ.get(name, ""))
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class Settings:
    """Process-wide settings, read from the environment once at startup"""
    port: int = 8080
    dev_mode: bool = False
    assets_dir: str = os.path.join(REPO_ROOT, "assets")
    ffmpeg_path: str = ""
    render_timeout_sec: float = 300.0
    convert_timeout_sec: float = 120.0
    scratch_dir: Optional[str] = None
    video_config_path: Optional[str] = None
    # Image generation
    image_provider: str = ""
    openai_api_key: str = ""
    gemini_api_key: str = ""
    remove_bg_api_key: str = ""
    # Payments
    razorpay_key_id: str = ""
    razorpay_key_secret: str = ""
    razorpay_enabled: bool = False
    razorpay_base_url: str = "https://api.razorpay.com"
    price_usd: float = 4.99
    dev_price_usd: float = 1.0
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "Settings":
        env = os.environ if environ is None else environ
        key_id = env.get("RAZORPAY_KEY_ID", "")
        key_secret = env.get("RAZORPAY_KEY_SECRET", "")
        extra_origins = [
            origin.strip().rstrip("/")
            for origin in env.get("CORS_ORIGINS", env.get("CORS_ORIGIN", "")).split(",")
            if origin.strip()
        ]
        try:
            port = int(env.get("PORT", 8080))
        except ValueError:
            port = 8080
        return cls(
            port=port,
            dev_mode=_env_bool(env, "DEV_MODE") or env.get("APP_ENV") == "development",
            assets_dir=env.get("ASSETS_DIR") or os.path.join(REPO_ROOT, "assets"),
            ffmpeg_path=env.get("FFMPEG_PATH", ""),
            render_timeout_sec=_env_float(env, "RENDER_TIMEOUT_SEC", 300.0),
            convert_timeout_sec=_env_float(env, "CONVERT_TIMEOUT_SEC", 120.0),
            scratch_dir=env.get("SCRATCH_DIR") or None,
            video_config_path=env.get("VIDEO_CONFIG_PATH") or None,
            image_provider=env.get("IMAGE_GENERATION_PROVIDER", "").strip().lower(),
            openai_api_key=env.get("OPENAI_API_KEY", ""),
            gemini_api_key=env.get("GEMINI_API_KEY", ""),
            remove_bg_api_key=env.get("REMOVE_BG_API_KEY", ""),
            razorpay_key_id=key_id,
            razorpay_key_secret=key_secret,
            razorpay_enabled=_env_bool(env, "RAZORPAY_ENABLED", default=bool(key_id and key_secret)),
            razorpay_base_url=env.get("RAZORPAY_BASE_URL", "https://api.razorpay.com").rstrip("/"),
            price_usd=_env_float(env, "PRICE_USD", 4.99),
            dev_price_usd=_env_float(env, "DEV_PRICE_USD", 1.0),
            cors_origins=DEFAULT_CORS_ORIGINS + tuple(extra_origins),
        )

    def ffmpeg_exe(self) -> str:
        """Engine binary: explicit override, then ffmpeg on PATH, then the one bundled by imageio-ffmpeg.

        The bundled static build has no drawtext filter, so a system ffmpeg is preferred.
        """
        if self.ffmpeg_path:
            return self.ffmpeg_path
        return shutil.which("ffmpeg") or imageio_ffmpeg.get_ffmpeg_exe()


@dataclass(frozen=True)
class RenderAssets:
    """Background clip and font files the compositor needs on disk"""
    background_video: str
    fonts: Dict[str, str] = field(default_factory=dict)
    default_font: str = DEFAULT_FONT

    @classmethod
    def from_dir(cls, assets_dir: str) -> "RenderAssets":
        fonts_dir = os.path.join(assets_dir, "fonts")
        return cls(
            background_video=os.path.join(assets_dir, BACKGROUND_VIDEO),
            fonts={name: os.path.join(fonts_dir, name) for name in FONT_FILES},
        )

    def font_path(self, font_family: str) -> str:
        """Path for a configured font family, falling back to the default font"""
        return self.fonts.get(font_family) or self.fonts.get(self.default_font, "")

    def missing(self) -> List[str]:
        paths = [self.background_video, *self.fonts.values()]
        return [path for path in paths if not os.path.isfile(path)]

    def ensure_present(self) -> None:
        missing = self.missing()
        if missing:
            raise MissingAssetsError(missing)
