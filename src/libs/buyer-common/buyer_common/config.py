# src/libs/buyer-common/buyer_common/config.py
import os
from dotenv import load_dotenv

# Load environment variables from a .env file for local development.
load_dotenv()


# Kafka Configurations
KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS_HOST") or os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9093")
KAFKA_PUBLISH_TIMEOUT_SECONDS = float(os.getenv("KAFKA_PUBLISH_TIMEOUT_SECONDS", "10"))

# Buyer App Configurations
BUYER_APP_PROJECT_ID = os.getenv("BUYER_APP_PROJECT_ID", "buyer-platform")
BUYER_APP_TOPIC = os.getenv("BUYER_APP_TOPIC", "buyer_app_requests")
BUYER_APP_SCHEMAS_DIR = os.getenv("BUYER_APP_SCHEMAS_DIR") or None
BUYER_APP_VERIFY_TOPICS = os.getenv("BUYER_APP_VERIFY_TOPICS", "false").strip().lower() in {"1", "true", "yes", "on"}
