"""
Configuration for the voice companion.
Organized into discrete feature sections for clarity.
"""

import os
from pathlib import Path
from typing import Dict, Any, Optional

from dotenv import load_dotenv

from .utils.prompt_builder import DEFAULT_PERSONA


# =============================================================================
# SECTION 1: ENVIRONMENT & CREDENTIALS
# =============================================================================

# Load environment variables from the project root
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
DEFAULT_GEMINI_TIMEOUT = 30.0
DEFAULT_MEMORY_FILE = "state_management/companion_memory.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def get_gemini_settings() -> Dict[str, Any]:
    """Credentials and endpoint for the generative service, read from the environment."""
    return {
        "api_key": os.getenv("GEMINI_API_KEY"),
        "model": os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        "base_url": os.getenv("GEMINI_BASE_URL") or DEFAULT_GEMINI_BASE_URL,
        "timeout": _env_float("GEMINI_TIMEOUT_SECONDS", DEFAULT_GEMINI_TIMEOUT),
    }


def get_log_level() -> str:
    return (os.getenv("COMPANION_LOG_LEVEL") or "INFO").upper()


# =============================================================================
# SECTION 2: PROVIDER SELECTION
# =============================================================================
# Choose which provider implementation to use for each component.

CAPTURE_PROVIDER = "sounddevice"
TRANSCRIPTION_PROVIDER = "gemini"
RESPONSE_PROVIDER = "gemini"
TTS_PROVIDER = "local_tts"
STORAGE_PROVIDER = "json_file"  # Options: "json_file", "in_memory"


# =============================================================================
# SECTION 3: CAPTURE CONFIGURATION
# =============================================================================

CAPTURE_CONFIG = {
    "sample_rate": 16000,            # 16 kHz mono PCM16, sent as audio/wav
    "channels": 1,
    "frames_per_buffer": 1024,
    "max_duration_seconds": 120,     # Stop collecting after two minutes
    "device": None,                  # None = system default input
}


# =============================================================================
# SECTION 4: TRANSCRIPTION & RESPONSE CONFIGURATION (Gemini)
# =============================================================================

TRANSCRIPTION_INSTRUCTION = (
    "Transcribe this audio exactly as spoken. "
    "Return only the transcript text, without quotes or commentary."
)

RESPONSE_GENERATION_CONFIG = {
    "temperature": 0.7,
    "maxOutputTokens": 256,
}


# =============================================================================
# SECTION 5: SPEECH OUTPUT CONFIGURATION
# =============================================================================

SPEECH_CONFIG = {
    "language": "en-US",
    "rate": 1.0,     # Multiplier, 1.0 = normal
    "pitch": 1.0,    # Multiplier, 1.0 = normal
}

# Local TTS engine (macOS 'say' command / pyttsx3)
LOCAL_TTS_CONFIG = {
    "base_rate": 175,   # Words per minute at rate 1.0
    "volume": 0.9,      # Volume 0.0 to 1.0
    "voice_id": None,   # None = match SPEECH_CONFIG["language"]
}


# =============================================================================
# SECTION 6: MEMORY & STORAGE CONFIGURATION
# =============================================================================

MEMORY_CONFIG = {
    "max_turns": 10,       # 5 exchanges
    "context_turns": 5,    # Turns sent with each prompt
    "storage_key": "conversation_memory",
}


def get_storage_config() -> Dict[str, Any]:
    return {
        "path": os.getenv("COMPANION_MEMORY_FILE") or DEFAULT_MEMORY_FILE,
    }


# =============================================================================
# SECTION 7: SESSION MESSAGES & PERSONA
# =============================================================================

PERSONA = DEFAULT_PERSONA

# Overrides for the controller's built-in status messages (see session_controller.DEFAULT_MESSAGES)
SESSION_MESSAGES: Dict[str, str] = {}


# =============================================================================
# SECTION 8: FRAMEWORK ASSEMBLY
# =============================================================================

def get_framework_config() -> Dict[str, Any]:
    """
    Assemble the complete configuration.

    Returns:
        Dictionary containing every provider configuration
    """
    gemini = get_gemini_settings()

    transcription_config = dict(gemini)
    transcription_config["instruction"] = TRANSCRIPTION_INSTRUCTION

    response_config = dict(gemini)
    response_config["generation_config"] = dict(RESPONSE_GENERATION_CONFIG)

    return {
        "capture": {
            "provider": CAPTURE_PROVIDER,
            "config": dict(CAPTURE_CONFIG)
        },
        "transcription": {
            "provider": TRANSCRIPTION_PROVIDER,
            "config": transcription_config
        },
        "response": {
            "provider": RESPONSE_PROVIDER,
            "config": response_config
        },
        "tts": {
            "provider": TTS_PROVIDER,
            "config": dict(LOCAL_TTS_CONFIG)
        },
        "storage": {
            "provider": STORAGE_PROVIDER,
            "config": get_storage_config()
        },
        "speech": dict(SPEECH_CONFIG),
        "memory": dict(MEMORY_CONFIG),
        "session": {
            "persona": PERSONA,
            "messages": dict(SESSION_MESSAGES),
        },
    }


# =============================================================================
# SECTION 9: ENVIRONMENT PRESETS
# =============================================================================

# Active preset: "default", "dev", "prod", "test"
CONFIG_PRESET: str = "default"


def set_active_preset(preset: str) -> None:
    """Set the active configuration preset."""
    global CONFIG_PRESET
    CONFIG_PRESET = preset


def get_active_preset() -> str:
    """Get the current active configuration preset."""
    return CONFIG_PRESET


def get_development_config() -> Dict[str, Any]:
    """Get configuration optimized for development."""
    config = get_framework_config()
    config["response"]["config"]["generation_config"]["temperature"] = 0.9
    return config


def get_production_config() -> Dict[str, Any]:
    """Get configuration optimized for production."""
    config = get_framework_config()
    config["response"]["config"]["generation_config"]["temperature"] = 0.6
    return config


def get_testing_config() -> Dict[str, Any]:
    """Get configuration for testing. Nothing touches the disk."""
    config = get_framework_config()
    config["storage"] = {"provider": "in_memory", "config": {}}
    config["response"]["config"]["timeout"] = 5.0
    config["transcription"]["config"]["timeout"] = 5.0
    return config


def get_config_for_preset(preset: Optional[str] = None) -> Dict[str, Any]:
    """Return configuration based on preset name."""
    p = (preset or CONFIG_PRESET or "default").lower()
    if p in ("dev", "development"):
        return get_development_config()
    if p in ("prod", "production"):
        return get_production_config()
    if p in ("test", "testing"):
        return get_testing_config()
    return get_framework_config()


# =============================================================================
# SECTION 10: VALIDATION & DIAGNOSTICS
# =============================================================================

def validate_environment() -> Dict[str, Any]:
    """Validate the environment and configuration."""
    results = {"valid": True, "errors": [], "warnings": [], "info": []}

    try:
        gemini = get_gemini_settings()
    except ValueError as e:
        results["errors"].append(str(e))
        results["valid"] = False
        return results

    if not gemini["api_key"]:
        results["errors"].append("Missing required: GEMINI_API_KEY")
        results["valid"] = False
    else:
        results["info"].append(f"Gemini model: {gemini['model']}")

    memory_file = Path(get_storage_config()["path"])
    if STORAGE_PROVIDER == "json_file":
        if memory_file.exists():
            results["info"].append(f"Memory file: {memory_file}")
        elif not memory_file.parent.exists():
            results["warnings"].append(f"Memory directory will be created: {memory_file.parent}")
        else:
            results["info"].append(f"Memory file will be created: {memory_file}")

    if not env_path.exists():
        results["warnings"].append(f"No .env file at {env_path}")

    return results


def print_config_summary():
    """Print a summary of the current configuration."""
    print("=" * 60)
    print("🔧 Voice Companion Configuration")
    print("=" * 60)

    print(f"Preset: {get_active_preset()}")
    print(f"Capture: {CAPTURE_PROVIDER}")
    print(f"Transcription: {TRANSCRIPTION_PROVIDER}")
    print(f"Response: {RESPONSE_PROVIDER}")
    print(f"TTS: {TTS_PROVIDER}")
    print(f"Storage: {STORAGE_PROVIDER}")
    print(f"Memory: {MEMORY_CONFIG['max_turns']} turns, {MEMORY_CONFIG['context_turns']} in context")
    print()

    validation = validate_environment()
    if validation["valid"]:
        print("✅ Configuration Valid")
    else:
        print("❌ Configuration Issues:")
        for error in validation["errors"]:
            print(f"  - {error}")

    if validation["warnings"]:
        print("\n⚠️  Warnings:")
        for warning in validation["warnings"]:
            print(f"  - {warning}")

    if validation["info"]:
        print()
        for item in validation["info"]:
            print(f"ℹ️  {item}")

    print("=" * 60)
