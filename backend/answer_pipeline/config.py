"""
Configuration for the illustrated answer pipeline.
"""
import os
from dataclasses import dataclass
from typing import Optional


MB = 1024 * 1024


@dataclass
class AppConfig:
    """Application configuration loaded from environment variables"""
    
    # Wikimedia Commons
    wikimedia_api_url: str = "https://commons.wikimedia.org/w/api.php"
    search_results_per_term: int = 3
    max_search_candidates: int = 15
    
    # Image admission
    max_image_bytes: int = 1 * MB          # per-image ceiling
    max_total_payload_bytes: int = 17 * MB  # Gemini inline limit is 20MB
    max_processed_images: int = 15
    svg_default_size: int = 300
    
    # Fan-out
    fanout_workers: int = 8
    
    # Gemini
    gemini_relay_url: str = "https://tight-brook-3d83.jcmpagel.workers.dev/generateContent"
    gemini_api_key: Optional[str] = None
    terms_model: str = "gemini-2.0-flash-lite"
    answer_model: str = "gemini-2.0-flash"
    answer_temperature: float = 0.2
    answer_max_output_tokens: int = 1024
    
    # API timeouts (seconds)
    http_timeout: float = 30.0
    model_timeout: float = 120.0
    user_agent: str = "IllustratedAnswers/0.1 (https://github.com/; image research bot)"
    
    # Logging
    log_level: str = "INFO"


def load_config() -> AppConfig:
    """Load configuration from environment variables"""
    return AppConfig(
        # Wikimedia
        wikimedia_api_url=os.getenv('WIKIMEDIA_API_URL', 'https://commons.wikimedia.org/w/api.php'),
        search_results_per_term=int(os.getenv('SEARCH_RESULTS_PER_TERM', '3')),
        max_search_candidates=int(os.getenv('MAX_SEARCH_CANDIDATES', '15')),
        
        # Admission
        max_image_bytes=int(os.getenv('MAX_IMAGE_BYTES', str(1 * MB))),
        max_total_payload_bytes=int(os.getenv('MAX_TOTAL_PAYLOAD_BYTES', str(17 * MB))),
        max_processed_images=int(os.getenv('MAX_PROCESSED_IMAGES', '15')),
        svg_default_size=int(os.getenv('SVG_DEFAULT_SIZE', '300')),
        
        fanout_workers=int(os.getenv('FANOUT_WORKERS', '8')),
        
        # Gemini (relay needs no key; the direct path does)
        gemini_relay_url=os.getenv(
            'GEMINI_RELAY_URL',
            'https://tight-brook-3d83.jcmpagel.workers.dev/generateContent',
        ),
        gemini_api_key=os.getenv('GEMINI_API_KEY') or None,
        terms_model=os.getenv('TERMS_MODEL', 'gemini-2.0-flash-lite'),
        answer_model=os.getenv('ANSWER_MODEL', 'gemini-2.0-flash'),
        answer_temperature=float(os.getenv('ANSWER_TEMPERATURE', '0.2')),
        answer_max_output_tokens=int(os.getenv('ANSWER_MAX_OUTPUT_TOKENS', '1024')),
        
        # Timeouts
        http_timeout=float(os.getenv('HTTP_TIMEOUT', '30')),
        model_timeout=float(os.getenv('MODEL_TIMEOUT', '120')),
        user_agent=os.getenv(
            'USER_AGENT',
            'IllustratedAnswers/0.1 (https://github.com/; image research bot)',
        ),
        
        # Logging
        log_level=os.getenv('LOG_LEVEL', 'INFO'),
    )


# Global config instance
config = load_config()
