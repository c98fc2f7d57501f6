import os
from dataclasses import dataclass

@dataclass(frozen=True)
class Settings:
    supabase_url: str = ""
    supabase_anon_key: str = ""
    # "supabase" talks to the hosted backend, "local" uses a JSON file
    backend: str = "supabase"
    data_path: str = "golf_buddies_data.json"
    session_path: str = "golf_buddies_session.json"
    viewport_width: float = 390.0
    redirect_url: str = "golfbuddies://auth/callback"

def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default

def load_settings() -> Settings:
    defaults = Settings()
    backend = os.getenv("GOLF_BUDDIES_BACKEND", "").strip().lower()
    return Settings(
        supabase_url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY", "").strip(),
        backend=backend if backend in {"supabase", "local"} else defaults.backend,
        data_path=os.getenv("GOLF_BUDDIES_DATA_PATH", "").strip() or defaults.data_path,
        session_path=(
            os.getenv("GOLF_BUDDIES_SESSION_PATH", "").strip() or defaults.session_path
        ),
        viewport_width=_float_env("GOLF_BUDDIES_VIEWPORT_WIDTH", defaults.viewport_width),
        redirect_url=(
            os.getenv("GOLF_BUDDIES_REDIRECT_URL", "").strip() or defaults.redirect_url
        ),
    )
