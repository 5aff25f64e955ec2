import os
from dataclasses import dataclass
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv(".env.local")


@dataclass
class Config:
    """Configuration class for the booking engine"""

    # Database
    supabase_url: str
    supabase_key: str

    # LiveKit (lifecycle event delivery)
    livekit_url: str
    livekit_api_key: str
    livekit_api_secret: str

    # Practice
    practice_timezone: str = "Africa/Johannesburg"
    practice_location: str = "908 St Bernards Drive, Garsfontein, Pretoria East"

    # Business Logic
    hold_ttl_minutes: int = 10
    price_virtual: Decimal = Decimal("1500")
    price_telephonic: Decimal = Decimal("500")
    price_face_to_face: Decimal = Decimal("1500")

    # Events
    event_publish_retries: int = 3
    event_retry_delay_seconds: float = 0.5

    @classmethod
    def from_env(cls):
        """Create configuration from environment variables"""
        return cls(
            supabase_url=os.getenv("SUPABASE_URL", ""),
            supabase_key=os.getenv("SUPABASE_KEY", ""),
            livekit_url=os.getenv("LIVEKIT_URL", ""),
            livekit_api_key=os.getenv("LIVEKIT_API_KEY", ""),
            livekit_api_secret=os.getenv("LIVEKIT_API_SECRET", ""),
            practice_timezone=os.getenv("PRACTICE_TIMEZONE", "Africa/Johannesburg"),
            practice_location=os.getenv(
                "PRACTICE_LOCATION", "908 St Bernards Drive, Garsfontein, Pretoria East"
            ),
            hold_ttl_minutes=int(os.getenv("HOLD_TTL_MINUTES", "10")),
            price_virtual=Decimal(os.getenv("PRICE_VIRTUAL", "1500")),
            price_telephonic=Decimal(os.getenv("PRICE_TELEPHONIC", "500")),
            price_face_to_face=Decimal(os.getenv("PRICE_FACE_TO_FACE", "1500")),
            event_publish_retries=int(os.getenv("EVENT_PUBLISH_RETRIES", "3")),
            event_retry_delay_seconds=float(
                os.getenv("EVENT_RETRY_DELAY_SECONDS", "0.5")
            ),
        )


# Global config instance
config = Config.from_env()
