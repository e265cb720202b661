# config.py
import os
from dotenv import load_dotenv

load_dotenv()

MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB = os.getenv("MONGODB_DB", "exam_proctor_db")

JWT_SECRET = os.getenv("JWT_SECRET")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

# External face/mobile detection service
INFERENCE_URL = os.getenv("INFERENCE_URL", "http://localhost:8001")
INFERENCE_TIMEOUT = float(os.getenv("INFERENCE_TIMEOUT", "10"))
MAX_FRAME_BYTES = int(os.getenv("MAX_FRAME_BYTES", str(5 * 1024 * 1024)))

# Seconds allowed past the deadline before an attempt is sealed
ATTEMPT_GRACE_SECONDS = int(os.getenv("ATTEMPT_GRACE_SECONDS", "30"))
EXPIRY_SWEEP_INTERVAL = int(os.getenv("EXPIRY_SWEEP_INTERVAL", "60"))

WRITE_RETRIES = int(os.getenv("WRITE_RETRIES", "1"))
SUBMIT_MAX_RETRIES = int(os.getenv("SUBMIT_MAX_RETRIES", "5"))

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]
OPERATOR_ROLES = {r.strip() for r in os.getenv("OPERATOR_ROLES", "admin").split(",") if r.strip()}

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
