#!/usr/bin/env python3
"""
Configuration for the coin price alert bot.
"""
import os
from dotenv import load_dotenv

# Load environment variables
# The .env file lives in the project root
env_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
load_dotenv(env_path)

# Telegram Bot Token (checked by main.py before the bot starts)
TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN')

# Market data API
COINGECKO_API = os.getenv('COINGECKO_API', 'https://api.coingecko.com/api/v3')

# Quote cache freshness window (seconds)
CACHE_DURATION = 5 * 60

# Minimum delay before every upstream call attempt (seconds)
RATE_LIMIT_DELAY = 1.2

# Retries on "too many requests" and the first backoff delay (1s, 2s, 4s)
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0

API_TIMEOUT = float(os.getenv('API_TIMEOUT', '10'))  # seconds

TOP_COINS_LIMIT = 10
MAX_ALERT_CHOICES = 20

# "=" alerts fire within this fraction of the threshold
EQ_TOLERANCE = 0.01

# Alert evaluation interval (seconds)
ALERT_CHECK_INTERVAL = int(os.getenv('ALERT_CHECK_INTERVAL', '120'))
if ALERT_CHECK_INTERVAL < 10 or ALERT_CHECK_INTERVAL > 3600:
    print(f"⚠️ ALERT_CHECK_INTERVAL={ALERT_CHECK_INTERVAL} is out of range! Use 10-3600 seconds")
    ALERT_CHECK_INTERVAL = 120

# Upper bound for fetching one alert's price during evaluation (seconds)
ALERT_CHECK_TIMEOUT = float(os.getenv('ALERT_CHECK_TIMEOUT', '60'))

# Storage
DB_PATH = os.getenv('DB_PATH', 'crypto_bot.db')

# Health check server
PORT = int(os.getenv('PORT', '3000'))
HEALTH_ENABLED = os.getenv('HEALTH_ENABLED', '1').lower() in ('1', 'true', 'yes')

# Command rate limit (calls per minute)
RATE_LIMIT = int(os.getenv('RATE_LIMIT', '60'))

# Self ping against idling on free hosting (off when unset)
KEEPALIVE_URL = os.getenv('RENDER_EXTERNAL_URL')
KEEPALIVE_INTERVAL = 14 * 60  # seconds
