import os
import logging
from logging.handlers import RotatingFileHandler

from dotenv import load_dotenv

load_dotenv()

# Environment & Security setup
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 12))

DATA_FILE = os.getenv("DATA_FILE", "rcc_storage.json")

# Stubbed login: one teacher account, one shared key for every student
TEACHER_USERNAME = os.getenv("TEACHER_USERNAME", "Raghubir")
TEACHER_ACCESS_KEY = os.getenv("TEACHER_ACCESS_KEY", "SIDHARTH")
STUDENT_ACCESS_KEY = os.getenv("STUDENT_ACCESS_KEY", "Sidharth")

# Fees
ANNUAL_FEE = float(os.getenv("ANNUAL_FEE", 60000))
COLLECTION_TARGET = float(os.getenv("COLLECTION_TARGET", 180000))

# AI insights
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE")


def configure_logging():
    root = logging.getLogger()
    if root.handlers:
        return
    formatter = logging.Formatter('%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]')
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)
    if LOG_FILE:
        log_dir = os.path.dirname(LOG_FILE)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(LOG_FILE, maxBytes=10240, backupCount=10)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    root.setLevel(LOG_LEVEL)
